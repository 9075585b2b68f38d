from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

class RemoteListingEntry(BaseModel):
  """One object returned by a remote listing, keyed by its full remote key."""
  key: str
  last_modified: Optional[datetime] = None
  etag: Optional[str] = None
  size: int = 0

class ObjectMetadata(BaseModel):
  """Attributes of a path: a regular file, an explicit directory (a placeholder
  object exists) or an implicit one (only deeper keys exist)."""
  key: str
  last_modified: Optional[datetime] = None
  etag: Optional[str] = None
  size: int = Field(default=0, ge=0)
  is_directory: bool = False
  is_regular_file: bool = False

  @model_validator(mode="after")
  def check_kind(self):
    if not (self.is_directory or self.is_regular_file):
      raise ValueError("metadata must describe a directory or a regular file")
    return self

class UploadOptions(BaseModel):
  """Object options forwarded when uploading or copying to a path."""
  tags: Dict[str, str] = Field(default_factory=dict)
  content_type: Optional[str] = None
  storage_class: Optional[str] = None

class FileNode(BaseModel):
  name: str
  path: Optional[str] = None
  size: Optional[int] = None
  mime_type: Optional[str] = None
  etag: Optional[str] = None
  last_modified: Optional[datetime] = None
  is_file: bool
  children: Optional[List["FileNode"]] = Field(default_factory=list)

# We need to update self references.
FileNode.model_rebuild()
