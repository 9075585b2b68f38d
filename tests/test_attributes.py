import pytest
from unittest.mock import MagicMock
from objectfs.errors import NotFoundError, TransportError
from objectfs.models.files import ObjectMetadata, RemoteListingEntry
from objectfs.services.attributes import AttributeResolver, MetadataCache, resolve_attributes
from objectfs.services.client import RemoteObjectClient
from objectfs.utils.keys import BucketKeyScheme
from objectfs.utils.paths import parse


@pytest.fixture
def mock_client():
    """Create a mock remote client returning no object."""
    client = MagicMock(spec=RemoteObjectClient)
    client.list_objects.return_value = []
    return client


@pytest.fixture
def resolver(mock_client):
    return AttributeResolver(mock_client, BucketKeyScheme(), MetadataCache())


def listed(*keys, etag=None):
    return [RemoteListingEntry(key=key, etag=etag, size=5) for key in keys]


class TestResolveAttributes:
    """Test suite for the classification of a key from a listing."""

    def test_implicit_directory(self):
        """Test deeper keys make an implicit directory of size 0."""
        metadata = resolve_attributes("a", "a", listed("a/b/c.txt"))
        assert metadata.is_directory
        assert not metadata.is_regular_file
        assert metadata.size == 0
        assert metadata.last_modified is None
        assert metadata.etag is None
        assert metadata.key == "a/"

    def test_explicit_over_implicit(self):
        """Test a placeholder object gives its attributes to the directory."""
        entries = [RemoteListingEntry(key="a/", etag="E", size=0), RemoteListingEntry(key="a/b.txt", etag="F", size=5)]
        metadata = resolve_attributes("a", "a", entries)
        assert metadata.is_directory
        assert metadata.etag == "E"
        assert metadata.key == "a/"

    def test_explicit_listed_last(self):
        """Test the placeholder wins wherever it is listed."""
        entries = [RemoteListingEntry(key="a", etag="F", size=5), RemoteListingEntry(key="a/", etag="E", size=0)]
        assert resolve_attributes("a", "a", entries).etag == "E"

    def test_regular_file(self):
        metadata = resolve_attributes("a/b.txt", "a/b.txt", listed("a/b.txt", etag="F"))
        assert metadata.is_regular_file
        assert not metadata.is_directory
        assert metadata.size == 5
        assert metadata.etag == "F"
        assert metadata.key == "a/b.txt"

    def test_file_over_implicit_directory(self):
        """Test a file and deeper keys sharing a name resolve to the file."""
        assert resolve_attributes("a", "a", listed("a", "a/b")).is_regular_file

    def test_prefix_boundary(self):
        """Test "abc" is not the parent of "abcd/x"."""
        metadata = resolve_attributes("abc", "abc", listed("abc", "abcd/x"))
        assert metadata.is_regular_file

    def test_only_longer_names(self):
        """Test keys sharing a prefix without separator reveal nothing."""
        assert resolve_attributes("abc", "abc", listed("abcd/x", "abcde")) is None

    def test_path_key_differs_from_remote_key(self):
        """Test the metadata key is the path key, the remote prefix removed."""
        metadata = resolve_attributes("a", "files/a", listed("files/a/b"))
        assert metadata.key == "a/"


class TestAttributeResolver:
    """Test suite for the attribute resolver."""

    def test_root_is_a_directory(self, resolver, mock_client):
        """Test the namespace root is a directory with no remote call."""
        metadata = resolver.read_attributes(parse("/bucket"))
        assert metadata.is_directory
        assert metadata.key == "/"
        assert metadata.size == 0
        mock_client.list_objects.assert_not_called()

    def test_single_listing_call(self, resolver, mock_client):
        mock_client.list_objects.return_value = listed("a/b.txt")
        metadata = resolver.read_attributes(parse("/bucket/a/b.txt"))
        assert metadata.is_regular_file
        mock_client.list_objects.assert_called_once_with("bucket", "a/b.txt")

    def test_not_found(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.read_attributes(parse("/bucket/missing"))

    def test_cached_attributes_read_once(self, resolver, mock_client):
        """Test cached attributes are used once, then fetched again."""
        path = parse("/bucket/a.txt")
        resolver.cache.put(path, ObjectMetadata(key="a.txt", size=7, is_regular_file=True))
        assert resolver.read_attributes(path).size == 7
        mock_client.list_objects.assert_not_called()
        with pytest.raises(NotFoundError):
            resolver.read_attributes(path)
        mock_client.list_objects.assert_called_once()

    def test_exists(self, resolver, mock_client):
        mock_client.list_objects.return_value = listed("a/b.txt")
        assert resolver.exists(parse("/bucket/a"))
        mock_client.list_objects.return_value = []
        assert not resolver.exists(parse("/bucket/a"))

    def test_exists_on_transport_error(self, resolver, mock_client):
        """Test existence checks never fail when the remote store does."""
        mock_client.list_objects.side_effect = TransportError("unreachable")
        assert not resolver.exists(parse("/bucket/a"))

    def test_read_attributes_on_transport_error(self, resolver, mock_client):
        mock_client.list_objects.side_effect = TransportError("unreachable")
        with pytest.raises(TransportError):
            resolver.read_attributes(parse("/bucket/a"))


class TestObjectMetadata:
    """Test suite for the object metadata model."""

    def test_kind_required(self):
        with pytest.raises(ValueError):
            ObjectMetadata(key="a")

    def test_negative_size(self):
        with pytest.raises(ValueError):
            ObjectMetadata(key="a", size=-1, is_regular_file=True)
