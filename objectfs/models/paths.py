from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, field_validator
from ..errors import InvalidPathError

PATH_SEPARATOR = "/"

class VirtualPath(BaseModel):
  """A location in the hierarchical namespace synthesized over flat keys.

  Absolute paths carry the id of the namespace root they belong to (a bucket
  name, or the mount and scope of a scoped store). Relative paths have no root.
  Segments never contain the separator nor empty strings.
  """
  model_config = ConfigDict(frozen=True)

  root: Optional[str] = None
  segments: Tuple[str, ...] = ()

  @field_validator("root")
  @classmethod
  def check_root(cls, root: Optional[str]) -> Optional[str]:
    if root is not None and not all(root.split(PATH_SEPARATOR)):
      raise InvalidPathError(f"Root must be made of non empty segments: '{root}'")
    return root

  @field_validator("segments")
  @classmethod
  def check_segments(cls, segments: Tuple[str, ...]) -> Tuple[str, ...]:
    for segment in segments:
      if not segment or PATH_SEPARATOR in segment:
        raise InvalidPathError(f"Segment must be non empty and free of '{PATH_SEPARATOR}': '{segment}'")
    return segments

  def is_absolute(self) -> bool:
    return self.root is not None

  def __str__(self) -> str:
    key = PATH_SEPARATOR.join(self.segments)
    if self.is_absolute():
      return f"{PATH_SEPARATOR}{self.root}{PATH_SEPARATOR}{key}"
    return key

  # Paths are ordered by their rendered form
  def __lt__(self, other) -> bool:
    if not isinstance(other, VirtualPath):
      return NotImplemented
    return str(self) < str(other)

  def __le__(self, other) -> bool:
    if not isinstance(other, VirtualPath):
      return NotImplemented
    return str(self) <= str(other)

  def __gt__(self, other) -> bool:
    if not isinstance(other, VirtualPath):
      return NotImplemented
    return str(self) > str(other)

  def __ge__(self, other) -> bool:
    if not isinstance(other, VirtualPath):
      return NotImplemented
    return str(self) >= str(other)
