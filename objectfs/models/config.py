from typing import Optional, List, Literal, Mapping
from pydantic import BaseModel, Field, field_validator
import os

ENV_PREFIX = "OBJECTFS_"

# 5 GB, the largest object S3 copies in a single request
DEFAULT_MAX_COPY_SIZE = 5 * 1024 * 1024 * 1024
# 100 MB in binary
DEFAULT_COPY_CHUNK_SIZE = 100 * 1024 * 1024
DEFAULT_DOWNLOAD_CHUNK_SIZE = 1024 * 1024
DEFAULT_MAX_UPLOAD_SIZE = 100 * 1024 * 1024

class FileSystemConfig(BaseModel):
  """Settings of one opened namespace root, read from the `env` mapping given
  when the file system is opened."""
  endpoint_url: Optional[str] = None
  access_key_id: Optional[str] = None
  secret_access_key: Optional[str] = None
  region: Optional[str] = None
  bucket: Optional[str] = None
  path_prefix: str = ""
  with_checksums: bool = False
  key_scheme: Literal["bucket", "scoped"] = "bucket"
  mount: str = "storage"
  scopes: List[str] = Field(default_factory=lambda: ["files", "jobs"])
  upload_storage_class: Optional[str] = None
  acl: Optional[str] = None
  max_copy_size: int = Field(default=DEFAULT_MAX_COPY_SIZE, gt=0)
  copy_chunk_size: int = Field(default=DEFAULT_COPY_CHUNK_SIZE, gt=0)
  download_chunk_size: int = Field(default=DEFAULT_DOWNLOAD_CHUNK_SIZE, gt=0)
  max_upload_size: int = Field(default=DEFAULT_MAX_UPLOAD_SIZE, gt=0)
  temp_dir: Optional[str] = None
  encryption_key: Optional[str] = None
  connect_timeout: Optional[float] = None
  read_timeout: Optional[float] = None
  max_attempts: Optional[int] = None

  @field_validator("scopes", mode="before")
  @classmethod
  def split_scopes(cls, value):
    # Environment variables carry lists as comma separated strings
    if isinstance(value, str):
      return [scope.strip() for scope in value.split(",") if scope.strip()]
    return value

  @field_validator("path_prefix")
  @classmethod
  def strip_prefix(cls, value: str) -> str:
    return value.strip("/")

  @classmethod
  def from_env(cls, env: Optional[Mapping[str, object]] = None) -> "FileSystemConfig":
    """Build the settings from an `env` mapping, ignoring unknown keys.

    Args:
        env (Mapping, optional): The settings passed when opening a file system.

    Returns:
        FileSystemConfig: The validated settings.
    """
    env = env or {}
    known = {name: value for name, value in env.items() if name in cls.model_fields}
    return cls.model_validate(known)

  @classmethod
  def from_environ(cls, prefix: str = ENV_PREFIX) -> "FileSystemConfig":
    """Build the settings from environment variables, e.g. OBJECTFS_BUCKET.

    Args:
        prefix (str, optional): The variables prefix. Defaults to "OBJECTFS_".

    Returns:
        FileSystemConfig: The validated settings.
    """
    env = {}
    for name in cls.model_fields:
      value = os.getenv(f"{prefix}{name.upper()}")
      if value is not None:
        env[name] = value
    return cls.model_validate(env)
