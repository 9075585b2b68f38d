class FileSystemError(Exception):
    """Base class of the errors raised by the virtual file system."""
    pass

class InvalidPathError(FileSystemError, ValueError):
    """Exception raised when a path string is malformed."""
    pass

class InvalidArgumentError(FileSystemError, ValueError):
    """Exception raised when an operation receives incompatible arguments,
    e.g. relativizing paths of different namespaces."""
    pass

class NotFoundError(FileSystemError, FileNotFoundError):
    """Exception raised when no object or directory exists at a path."""
    pass

class FileSystemNotFoundError(NotFoundError):
    """Exception raised when a namespace root has not been opened."""
    pass

class AlreadyExistsError(FileSystemError, FileExistsError):
    """Exception raised when the target of an operation already exists."""
    pass

class DirectoryNotEmptyError(FileSystemError, OSError):
    """Exception raised when deleting a directory that still has children."""
    pass

class UnsupportedOperationError(FileSystemError, NotImplementedError):
    """Exception raised for operations object storage cannot provide
    (symbolic links, watch services, attribute views, atomic moves)."""
    pass

class TransportError(FileSystemError, IOError):
    """Exception raised when the remote object client fails."""
    pass

class InternalError(FileSystemError, TypeError):
    """Exception raised on contract violations, e.g. a value that is not a
    virtual path passed where one is required."""
    pass

class ClosedChannelError(FileSystemError, ValueError):
    """Exception raised when using a byte channel or stream after closing it."""
    pass
