from typing import Iterator, Optional, Sequence, Union
from ..models.paths import VirtualPath, PATH_SEPARATOR
from ..errors import InvalidArgumentError, InternalError
from .keys import KeyScheme, BUCKET_SCHEME
import posixpath

PathLike = Union[VirtualPath, str]


def _clean(parts: Sequence[str]) -> tuple:
    """Delete redundant separators and empty parts."""
    cleaned = []
    for part in parts:
        cleaned.extend(p for p in part.split(PATH_SEPARATOR) if p)
    return tuple(cleaned)


def make_path(root: Optional[str], segments: Sequence[str]) -> VirtualPath:
    return VirtualPath(root=root, segments=_clean(segments))


def parse(first: str, *more: str, scheme: KeyScheme = BUCKET_SCHEME) -> VirtualPath:
    """Parse a path string of the form "/{root}/{key}", "/{root}" or "{key}".

    Empty segments produced by consecutive, leading or trailing separators are
    dropped, so "/bucket//a/" is "/bucket/a". A missing or empty root, e.g.
    "//a" or "/", is an error.

    Args:
        first (str): The path string, absolute when it starts with the separator.
        more (str): More segments appended to the path.
        scheme (KeyScheme, optional): The key scheme telling how many segments form the root.

    Raises:
        InvalidPathError: When the root segments of an absolute path are missing or invalid.

    Returns:
        VirtualPath: The parsed path.
    """
    root = None
    parts = first.split(PATH_SEPARATOR)
    if first.startswith(PATH_SEPARATOR):
        root, parts = scheme.split_root(parts[1:])
    return make_path(root, list(parts) + list(more))


def render(path: VirtualPath) -> str:
    return str(path)


def to_key(path: VirtualPath) -> str:
    """Key of the path in its namespace, without leading nor trailing separator.
    Callers append the separator to denote a directory."""
    return PATH_SEPARATOR.join(path.segments)


def check_path(value) -> VirtualPath:
    """Make sure a value is a virtual path.

    Raises:
        InternalError: When the value is not a virtual path.
    """
    if not isinstance(value, VirtualPath):
        raise InternalError(f"Expected a VirtualPath, got {type(value).__name__}")
    return value


def _as_path(value: PathLike, scheme: KeyScheme) -> VirtualPath:
    if isinstance(value, str):
        return parse(value, scheme=scheme)
    return check_path(value)


def resolve(base: VirtualPath, other: PathLike, scheme: KeyScheme = BUCKET_SCHEME) -> VirtualPath:
    """Resolve a path against a base path.

    Args:
        base (VirtualPath): The base path.
        other (PathLike): The path to resolve, returned as is when absolute.
        scheme (KeyScheme, optional): The key scheme used to parse a string path.

    Returns:
        VirtualPath: The resolved path.
    """
    other = _as_path(other, scheme)
    if other.is_absolute():
        return other
    if not other.segments:
        return base
    return VirtualPath(root=base.root, segments=base.segments + other.segments)


def resolve_sibling(base: VirtualPath, other: PathLike, scheme: KeyScheme = BUCKET_SCHEME) -> VirtualPath:
    """Resolve a path against the parent of a base path."""
    other = _as_path(other, scheme)
    parent = get_parent(base)
    if parent is None or other.is_absolute():
        return other
    if not other.segments:
        return parent
    return VirtualPath(root=base.root, segments=base.segments[:-1] + other.segments)


def relativize(base: VirtualPath, other: VirtualPath) -> VirtualPath:
    """Make a relative path from base to other.

    The longest run of leading segments shared by both paths is dropped and the
    remaining segments of other form the relative path.

    Args:
        base (VirtualPath): The absolute path to relativize against.
        other (VirtualPath): The absolute path to relativize.

    Raises:
        InvalidArgumentError: When a path is relative or the roots differ.

    Returns:
        VirtualPath: The relative path, empty when both paths are equal.
    """
    if not base.is_absolute():
        raise InvalidArgumentError(f"Path is already relative: {base}")
    if not other.is_absolute():
        raise InvalidArgumentError(f"Cannot relativize against a relative path: {other}")
    if base.root != other.root:
        raise InvalidArgumentError(f"Cannot relativize paths with different roots: '{base}', '{other}'")
    if base == other:
        return VirtualPath()
    common = 0
    for mine, theirs in zip(base.segments, other.segments):
        if mine != theirs:
            break
        common += 1
    return VirtualPath(segments=other.segments[common:])


def normalize(path: VirtualPath) -> VirtualPath:
    """Collapse ".", ".." and empty segments. ".." never climbs above the root
    of an absolute path."""
    if not path.segments:
        return path
    joined = PATH_SEPARATOR.join(path.segments)
    if path.is_absolute():
        joined = PATH_SEPARATOR + joined
    normalized = posixpath.normpath(joined)
    segments = [part for part in normalized.split(PATH_SEPARATOR) if part and part != "."]
    return VirtualPath(root=path.root, segments=tuple(segments))


def starts_with(path: VirtualPath, other: PathLike, scheme: KeyScheme = BUCKET_SCHEME) -> bool:
    other = _as_path(other, scheme)
    if len(other.segments) > len(path.segments):
        return False
    if not other.segments and not other.is_absolute() and (path.segments or path.is_absolute()):
        return False
    if other.root != path.root:
        return False
    return path.segments[:len(other.segments)] == other.segments


def ends_with(path: VirtualPath, other: PathLike, scheme: KeyScheme = BUCKET_SCHEME) -> bool:
    other = _as_path(other, scheme)
    if len(other.segments) > len(path.segments):
        return False
    if not other.segments and path.segments:
        return False
    if other.is_absolute() and other.root != path.root:
        return False
    if not other.segments:
        return True
    return path.segments[-len(other.segments):] == other.segments


def get_root(path: VirtualPath) -> Optional[VirtualPath]:
    if path.is_absolute():
        return VirtualPath(root=path.root)
    return None


def get_parent(path: VirtualPath) -> Optional[VirtualPath]:
    """Get the parent path, or None for a root or a single relative segment."""
    if not path.segments:
        return None
    if len(path.segments) == 1 and not path.is_absolute():
        return None
    return VirtualPath(root=path.root, segments=path.segments[:-1])


def get_file_name(path: VirtualPath) -> Optional[VirtualPath]:
    if not path.segments:
        return None
    return VirtualPath(segments=path.segments[-1:])


def name_count(path: VirtualPath) -> int:
    return len(path.segments)


def get_name(path: VirtualPath, index: int) -> VirtualPath:
    if index < 0 or index >= len(path.segments):
        raise InvalidArgumentError(f"Invalid name index {index} for path: {path}")
    return VirtualPath(segments=(path.segments[index],))


def subpath(path: VirtualPath, begin: int, end: int) -> VirtualPath:
    if begin < 0 or end > len(path.segments) or begin >= end:
        raise InvalidArgumentError(f"Invalid subpath range [{begin}, {end}) for path: {path}")
    return VirtualPath(segments=path.segments[begin:end])


def iter_names(path: VirtualPath) -> Iterator[VirtualPath]:
    for segment in path.segments:
        yield VirtualPath(segments=(segment,))


def to_absolute_path(path: VirtualPath) -> VirtualPath:
    if path.is_absolute():
        return path
    raise InvalidArgumentError(f"Relative path cannot be made absolute: {path}")


def compare(path: VirtualPath, other: VirtualPath) -> int:
    mine, theirs = str(path), str(other)
    return (mine > theirs) - (mine < theirs)


def to_uri(path: VirtualPath, scheme_name: str = "objectfs", endpoint: Optional[str] = None) -> str:
    """Get the URI of an absolute path: "{scheme}://[endpoint]/{root}/{key}"."""
    path = to_absolute_path(path)
    return f"{scheme_name}://{endpoint or ''}/{path.root}/{to_key(path)}"
