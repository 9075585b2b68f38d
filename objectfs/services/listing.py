from typing import Callable, Iterable, Iterator, List, Optional, Tuple
from ..models.files import ObjectMetadata, RemoteListingEntry
from ..models.paths import VirtualPath, PATH_SEPARATOR
from ..utils.paths import to_key
from .attributes import MetadataCache
import logging


def reconstruct_children(parent: VirtualPath, prefix: str,
                         entries: Iterable[RemoteListingEntry]) -> Iterator[Tuple[VirtualPath, ObjectMetadata]]:
    """Turn a flat listing of keys into the immediate children of a directory.

    The listing holds every key starting with the prefix, at any depth. Keys
    one level below the prefix are files, or explicit directories when they end
    with the separator. Deeper keys reveal an implicit directory named by their
    first segment. Each child name is yielded once, with the attributes found
    for it: the listed ones for direct children, a zero size directory for
    implicit ones.

    Args:
        parent (VirtualPath): The directory path.
        prefix (str): The remote key prefix of the directory, ending with the separator (or empty for a root).
        entries (Iterable[RemoteListingEntry]): The remote listing under the prefix.

    Yields:
        Tuple[VirtualPath, ObjectMetadata]: Each child path and its attributes.
    """
    seen_items = set()
    for entry in entries:
        key = entry.key
        # The directory placeholder itself
        if key == prefix:
            continue
        if not key.startswith(prefix):
            logging.debug(f"Skipping key {key} outside of prefix {prefix}")
            continue

        path_parts = [part for part in key[len(prefix):].split(PATH_SEPARATOR) if part]
        if not path_parts:
            continue
        item_name = path_parts[0]
        if item_name in seen_items:
            continue
        seen_items.add(item_name)

        child = VirtualPath(root=parent.root, segments=parent.segments + (item_name,))
        child_key = to_key(child)
        if len(path_parts) == 1:
            is_dir = key.endswith(PATH_SEPARATOR)
            yield child, ObjectMetadata(
                key=f"{child_key}{PATH_SEPARATOR}" if is_dir else child_key,
                last_modified=entry.last_modified,
                etag=entry.etag,
                size=entry.size,
                is_directory=is_dir,
                is_regular_file=not is_dir)
        else:
            yield child, ObjectMetadata(
                key=f"{child_key}{PATH_SEPARATOR}",
                size=0,
                is_directory=True)


class DirectoryListing:
    """Iterator over the immediate children of a directory.

    The remote listing is fetched on first use. Iteration is one-shot: open a
    new listing to iterate again. The attributes of every yielded child are
    left in the metadata cache, so that the next attribute read of that child
    needs no remote call.
    """

    def __init__(self, parent: VirtualPath, prefix: str, fetch: Callable[[], List[RemoteListingEntry]],
                 cache: MetadataCache, path_filter: Optional[Callable[[VirtualPath], bool]] = None):
        self.parent = parent
        self.prefix = prefix
        self._fetch = fetch
        self._cache = cache
        self._filter = path_filter
        self._children = None
        self._closed = False

    def __iter__(self) -> "DirectoryListing":
        return self

    def __next__(self) -> VirtualPath:
        if self._closed:
            raise StopIteration
        if self._children is None:
            entries = self._fetch()
            logging.debug(f"Listing {self.parent}: {len(entries)} keys under '{self.prefix}'")
            self._children = reconstruct_children(self.parent, self.prefix, entries)
        while True:
            child, metadata = next(self._children)
            if self._filter is None or self._filter(child):
                self._cache.put(child, metadata)
                return child

    def close(self):
        self._closed = True

    def __enter__(self) -> "DirectoryListing":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
