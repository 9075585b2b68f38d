from typing import Dict, Iterable, Optional
from ..models.files import ObjectMetadata, RemoteListingEntry
from ..models.paths import VirtualPath, PATH_SEPARATOR
from ..errors import NotFoundError, TransportError
from ..utils.keys import KeyScheme
from ..utils.paths import to_key
from .client import RemoteObjectClient
import logging
import threading


class MetadataCache:
    """Single-use attributes of paths met while listing a directory.

    An entry is read once, then dropped, forcing the following reads to fetch
    fresh attributes from the remote store. Writing to a path drops its entry.
    """

    def __init__(self):
        self._entries: Dict[VirtualPath, ObjectMetadata] = {}
        self._lock = threading.Lock()

    def put(self, path: VirtualPath, metadata: ObjectMetadata):
        with self._lock:
            self._entries[path] = metadata

    def pop(self, path: VirtualPath) -> Optional[ObjectMetadata]:
        with self._lock:
            return self._entries.pop(path, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def resolve_attributes(path_key: str, remote_key: str,
                       entries: Iterable[RemoteListingEntry]) -> Optional[ObjectMetadata]:
    """Find out what a key denotes from the objects listed under it.

    An object named after the key plus separator makes an explicit directory,
    whatever else is listed. Otherwise an object named exactly after the key is
    a regular file, and objects below "key/" reveal an implicit directory. A
    listed key only counts as a descendant when the separator follows the
    shared prefix, so "abc" is not a parent of "abcd/x".

    Args:
        path_key (str): The key of the path in its namespace.
        remote_key (str): The remote key of the path, prefix included.
        entries (Iterable[RemoteListingEntry]): The remote objects whose key starts with the remote key.

    Returns:
        ObjectMetadata: The path attributes, None when nothing matches.
    """
    dir_key = f"{remote_key}{PATH_SEPARATOR}"
    file_entry = None
    implicit_dir = False
    for entry in entries:
        if entry.key == dir_key:
            return ObjectMetadata(
                key=f"{path_key}{PATH_SEPARATOR}",
                last_modified=entry.last_modified,
                etag=entry.etag,
                size=entry.size,
                is_directory=True)
        if not entry.key.startswith(remote_key):
            continue
        if len(entry.key) == len(remote_key):
            if file_entry is None:
                file_entry = entry
        elif entry.key[len(remote_key)] == PATH_SEPARATOR:
            implicit_dir = True

    if file_entry is not None:
        return ObjectMetadata(
            key=path_key,
            last_modified=file_entry.last_modified,
            etag=file_entry.etag,
            size=file_entry.size,
            is_regular_file=True)
    if implicit_dir:
        return ObjectMetadata(key=f"{path_key}{PATH_SEPARATOR}", size=0, is_directory=True)
    return None


class AttributeResolver:
    """Resolves the attributes of paths with a single listing call per lookup."""

    def __init__(self, client: RemoteObjectClient, key_scheme: KeyScheme, cache: MetadataCache):
        self.client = client
        self.key_scheme = key_scheme
        self.cache = cache

    def read_attributes(self, path: VirtualPath) -> ObjectMetadata:
        """Get the attributes of a path: a file, an explicit or an implicit directory.

        Args:
            path (VirtualPath): The absolute path.

        Raises:
            NotFoundError: When neither an object nor a descendant exists.
            TransportError: When the remote listing fails.

        Returns:
            ObjectMetadata: The path attributes.
        """
        path_key = to_key(path)
        if not path_key:
            # The namespace root is always a directory
            return ObjectMetadata(key=PATH_SEPARATOR, size=0, is_directory=True)

        metadata = self.cache.pop(path)
        if metadata is not None:
            return metadata

        remote_key = self.key_scheme.remote_key(path)
        entries = self.client.list_objects(self.key_scheme.scope(path.root), remote_key)
        metadata = resolve_attributes(path_key, remote_key, entries or [])
        if metadata is None:
            raise NotFoundError(f"No such file or directory: {path}")
        logging.debug(f"Attributes of {path}: {metadata}")
        return metadata

    def exists(self, path: VirtualPath) -> bool:
        """Check a file or a directory exists at the specified path.

        Args:
            path (VirtualPath): The absolute path.

        Returns:
            bool: True if the path exists, False otherwise, also when the remote store fails.
        """
        try:
            self.read_attributes(path)
            return True
        except NotFoundError:
            return False
        except TransportError as e:
            logging.warning(f"Could not check existence of {path}: {e}")
            return False
