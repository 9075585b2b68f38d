import pytest
from unittest.mock import MagicMock
from objectfs.models.files import RemoteListingEntry
from objectfs.services.attributes import MetadataCache
from objectfs.services.listing import DirectoryListing, reconstruct_children
from objectfs.utils.paths import parse


def entries(*keys, size=3):
    return [RemoteListingEntry(key=key, etag=f"etag-{key}", size=0 if key.endswith("/") else size)
            for key in keys]


class TestReconstructChildren:
    """Test suite for the reconstruction of directory children from flat keys."""

    def test_files_and_implicit_directories(self):
        """Test direct keys are files and deeper keys reveal implicit directories."""
        parent = parse("/bucket/reports")
        children = dict(reconstruct_children(parent, "reports/",
                                             entries("reports/out.txt", "reports/plots/fig.png")))
        assert set(children) == {parse("/bucket/reports/out.txt"), parse("/bucket/reports/plots")}
        out = children[parse("/bucket/reports/out.txt")]
        assert out.is_regular_file and not out.is_directory
        assert out.key == "reports/out.txt"
        assert out.size == 3
        plots = children[parse("/bucket/reports/plots")]
        assert plots.is_directory
        assert plots.size == 0
        assert plots.key == "reports/plots/"
        assert plots.etag is None

    def test_prefix_is_skipped(self):
        """Test the directory placeholder is never a child of itself."""
        children = list(reconstruct_children(parse("/bucket/a"), "a/", entries("a/", "a/b.txt")))
        assert [child for child, _ in children] == [parse("/bucket/a/b.txt")]

    def test_explicit_directory(self):
        """Test a key ending with the separator is a directory with its listed attributes."""
        children = list(reconstruct_children(parse("/bucket/a"), "a/", entries("a/b/", "a/b/c.txt")))
        assert len(children) == 1
        child, metadata = children[0]
        assert child == parse("/bucket/a/b")
        assert metadata.is_directory
        assert metadata.etag == "etag-a/b/"

    def test_each_name_yielded_once(self):
        """Test many deep keys under the same name give a single child."""
        keys = ("a/x/1", "a/x/2", "a/x/y/3", "a/x", "a/z")
        children = [child for child, _ in reconstruct_children(parse("/bucket/a"), "a/", entries(*keys))]
        assert children == [parse("/bucket/a/x"), parse("/bucket/a/z")]

    def test_keys_outside_prefix_are_ignored(self):
        children = list(reconstruct_children(parse("/bucket/a"), "a/", entries("b/c", "a/d")))
        assert [child for child, _ in children] == [parse("/bucket/a/d")]

    def test_root_listing(self):
        """Test the root of a bucket lists with an empty prefix."""
        children = [child for child, _ in reconstruct_children(parse("/bucket"), "", entries("a.txt", "b/c"))]
        assert children == [parse("/bucket/a.txt"), parse("/bucket/b")]

    def test_redundant_separators(self):
        """Test empty parts of keys make no empty child name."""
        children = [child for child, _ in reconstruct_children(parse("/bucket/a"), "a/", entries("a//b"))]
        assert children == [parse("/bucket/a/b")]


class TestDirectoryListing:
    """Test suite for the directory listing iterator."""

    def test_fetch_on_first_use(self):
        """Test the listing is fetched lazily, once."""
        fetch = MagicMock(return_value=entries("a/b.txt"))
        listing = DirectoryListing(parse("/bucket/a"), "a/", fetch, MetadataCache())
        fetch.assert_not_called()
        assert list(listing) == [parse("/bucket/a/b.txt")]
        fetch.assert_called_once()

    def test_one_shot(self):
        """Test a consumed listing yields nothing more."""
        listing = DirectoryListing(parse("/bucket/a"), "a/", lambda: entries("a/b.txt"), MetadataCache())
        assert len(list(listing)) == 1
        assert list(listing) == []

    def test_children_attributes_are_cached(self):
        """Test each yielded child leaves its attributes in the cache, readable once."""
        cache = MetadataCache()
        listing = DirectoryListing(parse("/bucket/a"), "a/", lambda: entries("a/b.txt", "a/c/d"), cache)
        children = list(listing)
        assert len(cache) == 2
        metadata = cache.pop(children[1])
        assert metadata.is_directory
        assert cache.pop(children[1]) is None

    def test_filter(self):
        """Test filtered out children are neither yielded nor cached."""
        cache = MetadataCache()
        listing = DirectoryListing(parse("/bucket/a"), "a/", lambda: entries("a/b.txt", "a/c.png"), cache,
                                   path_filter=lambda path: str(path).endswith(".png"))
        assert list(listing) == [parse("/bucket/a/c.png")]
        assert len(cache) == 1

    def test_closed_listing(self):
        with DirectoryListing(parse("/bucket/a"), "a/", lambda: entries("a/b.txt"), MetadataCache()) as listing:
            pass
        with pytest.raises(StopIteration):
            next(listing)


class TestScopedListing:
    """Test suite for listing a scoped store end to end."""

    def test_reports_directory(self, provider, client, scoped_file_system):
        """Test a directory holding a file and an implicit sub directory."""
        client.put("files", "files/reports/out.txt", b"results")
        client.put("files", "files/reports/plots/fig.png", b"png")
        reports = scoped_file_system.get_path("/storage/files/reports")

        with provider.new_directory_stream(reports) as listing:
            children = list(listing)

        assert client.list_calls == [("files", "files/reports/")]
        assert sorted(str(child) for child in children) == [
            "/storage/files/reports/out.txt", "/storage/files/reports/plots"]
        plots = provider.read_attributes(scoped_file_system.get_path("/storage/files/reports/plots"))
        assert plots.is_directory
        assert plots.size == 0
        out = provider.read_attributes(scoped_file_system.get_path("/storage/files/reports/out.txt"))
        assert out.is_regular_file
        assert out.size == len(b"results")
        # Both attributes came from the listing
        assert len(client.list_calls) == 1
