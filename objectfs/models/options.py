from enum import Enum

class OpenOption(str, Enum):
  """How a file is opened by byte channels and streams."""
  READ = "READ"
  WRITE = "WRITE"
  APPEND = "APPEND"
  TRUNCATE_EXISTING = "TRUNCATE_EXISTING"
  CREATE = "CREATE"
  CREATE_NEW = "CREATE_NEW"
  DELETE_ON_CLOSE = "DELETE_ON_CLOSE"
  SPARSE = "SPARSE"
  SYNC = "SYNC"
  DSYNC = "DSYNC"

class CopyOption(str, Enum):
  """How a file is copied or moved."""
  REPLACE_EXISTING = "REPLACE_EXISTING"
  COPY_ATTRIBUTES = "COPY_ATTRIBUTES"
  ATOMIC_MOVE = "ATOMIC_MOVE"
  NOFOLLOW_LINKS = "NOFOLLOW_LINKS"

class AccessMode(str, Enum):
  READ = "READ"
  WRITE = "WRITE"
  EXECUTE = "EXECUTE"

# Options of a stream opened for writing without explicit options
DEFAULT_WRITE_OPTIONS = frozenset({OpenOption.CREATE, OpenOption.TRUNCATE_EXISTING, OpenOption.WRITE})
