from typing import List, Sequence, Tuple
from ..models.paths import VirtualPath, PATH_SEPARATOR
from ..errors import InvalidPathError, InvalidArgumentError

class KeyScheme:
    """Maps virtual paths to the flat keys of the remote store.

    A scheme decides how many leading segments of an absolute path name the
    namespace root, which scope id accompanies listing and fetch calls, and
    which key prefix the root adds in front of the path segments.
    """

    root_segments = 1

    def split_root(self, parts: Sequence[str]) -> Tuple[str, List[str]]:
        """Split the parts of an absolute path string into root id and segments.

        Args:
            parts (Sequence[str]): The parts following the leading separator, empty parts included.

        Raises:
            InvalidPathError: When root segments are missing or empty.

        Returns:
            Tuple[str, List[str]]: The root id and the remaining parts.
        """
        root_parts = list(parts[:self.root_segments])
        if len(root_parts) < self.root_segments or not all(root_parts):
            raise InvalidPathError(
                f"Absolute path must start with {self.root_segments} non empty root segment(s): /{PATH_SEPARATOR.join(parts)}")
        self.check_root(root_parts)
        return PATH_SEPARATOR.join(root_parts), list(parts[self.root_segments:])

    def check_root(self, root_parts: List[str]):
        pass

    def root_of(self, uri_path: str) -> str:
        """Get the namespace root id named by the path of a file system URI.

        Args:
            uri_path (str): The URI path, e.g. "/my-bucket" or "/storage/files".

        Raises:
            InvalidPathError: When root segments are missing, invalid or followed by more segments.

        Returns:
            str: The root id.
        """
        parts = [part for part in uri_path.split(PATH_SEPARATOR) if part]
        root, rest = self.split_root(parts)
        if rest:
            raise InvalidPathError(f"File system URI must only name a root: {uri_path}")
        return root

    def scope(self, root: str) -> str:
        """Get the scope id sent along with remote calls for a namespace root.

        Args:
            root (str): The namespace root id.

        Returns:
            str: The scope id.
        """
        return root

    def key_prefix(self, root: str) -> Tuple[str, ...]:
        return ()

    def remote_key(self, path: VirtualPath) -> str:
        """Get the flat remote key of an absolute path, without trailing separator.

        Args:
            path (VirtualPath): The absolute path.

        Raises:
            InvalidArgumentError: When the path is relative.

        Returns:
            str: The remote key.
        """
        if not path.is_absolute():
            raise InvalidArgumentError(f"Relative path has no remote key: {path}")
        return PATH_SEPARATOR.join(self.key_prefix(path.root) + tuple(path.segments))


class BucketKeyScheme(KeyScheme):
    """Bucket style keys: "/{bucket}/{key}", the bucket is both root and scope."""

    def __init__(self, path_prefix: str = ""):
        self.path_prefix = tuple(part for part in path_prefix.split(PATH_SEPARATOR) if part)

    def key_prefix(self, root: str) -> Tuple[str, ...]:
        return self.path_prefix


class ScopedKeyScheme(KeyScheme):
    """Scoped keys: "/{mount}/{scope}/{key}". The scope (e.g. "files" or "jobs")
    is the scope id of remote calls and the first part of every remote key."""

    root_segments = 2

    def __init__(self, mount: str = "storage", scopes: Sequence[str] = ("files", "jobs")):
        self.mount = mount
        self.scopes = tuple(scopes)

    def check_root(self, root_parts: List[str]):
        mount, scope = root_parts
        if mount != self.mount or scope not in self.scopes:
            raise InvalidPathError(
                f"Path must start with /{self.mount}/ followed by one of {', '.join(self.scopes)}")

    def scope(self, root: str) -> str:
        return root.split(PATH_SEPARATOR)[-1]

    def key_prefix(self, root: str) -> Tuple[str, ...]:
        return (self.scope(root),)


BUCKET_SCHEME = BucketKeyScheme()


def make_key_scheme(config) -> KeyScheme:
    """Build the key scheme described by file system settings.

    Args:
        config (FileSystemConfig): The file system settings.

    Returns:
        KeyScheme: The key scheme.
    """
    if config.key_scheme == "scoped":
        return ScopedKeyScheme(mount=config.mount, scopes=config.scopes)
    return BucketKeyScheme(path_prefix=config.path_prefix)
