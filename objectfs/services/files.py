from typing import Callable, Dict, Iterable, List, Mapping, Optional
from ..models.config import FileSystemConfig
from ..models.files import ObjectMetadata, UploadOptions
from ..models.options import OpenOption, CopyOption, AccessMode, DEFAULT_WRITE_OPTIONS
from ..models.paths import VirtualPath, PATH_SEPARATOR
from ..errors import (AlreadyExistsError, DirectoryNotEmptyError, FileSystemNotFoundError, InvalidArgumentError,
                      NotFoundError, UnsupportedOperationError)
from ..utils.keys import KeyScheme, make_key_scheme
from ..utils.paths import check_path, parse, to_absolute_path, to_uri
from .attributes import AttributeResolver, MetadataCache
from .channels import BridgeChannel, UploadOutputStream, make_temp_dir, remove_temp_dir
from .client import RemoteObjectClient
from .listing import DirectoryListing
from .registry import RootRegistry
from .s3 import S3Service
import logging
import os
import urllib.parse

OUTPUT_STREAM_OPTIONS = frozenset({OpenOption.CREATE, OpenOption.CREATE_NEW, OpenOption.TRUNCATE_EXISTING,
                                   OpenOption.WRITE, OpenOption.SPARSE})

class ObjectFileSystem:
  """
  A namespace root opened over a remote object store. It holds the settings,
  the remote client and the key scheme of the root, the attributes met while
  listing directories and the upload options set on paths.
  """

  def __init__(self, provider: "ObjectFileSystemProvider", root_id: str, config: FileSystemConfig,
               client: RemoteObjectClient, key_scheme: KeyScheme, endpoint: Optional[str] = None):
    self.provider = provider
    self.root_id = root_id
    self.config = config
    self.client = client
    self.key_scheme = key_scheme
    self.endpoint = endpoint
    self.cache = MetadataCache()
    self.resolver = AttributeResolver(client, key_scheme, self.cache)
    self._upload_options: Dict[VirtualPath, UploadOptions] = {}
    self._open = True

  separator = PATH_SEPARATOR

  @property
  def scope(self) -> str:
    """The scope id sent along with the remote calls of this root."""
    return self.key_scheme.scope(self.root_id)

  @property
  def root_directories(self) -> List[VirtualPath]:
    return [VirtualPath(root=self.root_id)]

  def get_path(self, first: str, *more: str) -> VirtualPath:
    """Parse a path, absolute when starting with the separator, relative otherwise.

    Args:
        first (str): The path string.
        more (str): More segments appended to the path.

    Returns:
        VirtualPath: The path.
    """
    return parse(first, *more, scheme=self.key_scheme)

  def remote_key(self, path: VirtualPath) -> str:
    return self.key_scheme.remote_key(path)

  def to_uri(self, path: VirtualPath) -> str:
    return to_uri(path, self.provider.scheme, self.endpoint)

  def is_open(self) -> bool:
    return self._open

  def is_read_only(self) -> bool:
    return False

  def close(self):
    """Close the file system and unregister its root. Closing twice does nothing."""
    if not self._open:
      return
    self._open = False
    self.cache.clear()
    self.provider.registry.remove(self.root_id)

  def set_tags(self, path: VirtualPath, tags: Mapping[str, str]):
    self._set_upload_option(path, tags=dict(tags))

  def set_content_type(self, path: VirtualPath, content_type: str):
    self._set_upload_option(path, content_type=content_type)

  def set_storage_class(self, path: VirtualPath, storage_class: str):
    self._set_upload_option(path, storage_class=storage_class)

  def upload_options(self, path: VirtualPath) -> UploadOptions:
    """Get the options of the objects uploaded or copied to a path.

    The storage class defaults to the configured upload storage class.

    Args:
        path (VirtualPath): The target path.

    Returns:
        UploadOptions: The upload options.
    """
    options = self._upload_options.get(path)
    if options is None:
      options = UploadOptions()
    if options.storage_class is None and self.config.upload_storage_class:
      options = options.model_copy(update={"storage_class": self.config.upload_storage_class})
    return options

  def _set_upload_option(self, path: VirtualPath, **values):
    path = to_absolute_path(check_path(path))
    options = self._upload_options.get(path, UploadOptions())
    self._upload_options[path] = options.model_copy(update=values)

  def __enter__(self) -> "ObjectFileSystem":
    return self

  def __exit__(self, exc_type, exc, tb):
    self.close()


class ObjectFileSystemProvider:
  """
  This service provides file system operations over flat object storage:
  directories are inferred from keys, streams and byte channels are bridged
  through local temporary files, and copies are done remotely.
  """

  scheme = "objectfs"

  def __init__(self, client_factory: Optional[Callable[[FileSystemConfig], RemoteObjectClient]] = None):
    """Initialize the provider.

    Args:
        client_factory (Callable, optional): Makes the remote client of a file system from its settings.
        Defaults to a S3 service.
    """
    self.client_factory = client_factory or S3Service.from_config
    self.registry = RootRegistry()

  #
  # File systems
  #

  def new_file_system(self, uri: str, env: Optional[Mapping[str, object]] = None) -> ObjectFileSystem:
    """Open a file system for the namespace root named by an URI, e.g. "objectfs://s3.example.org/my-bucket".

    The URI host is the endpoint of the S3 service, unless the settings have one.

    Args:
        uri (str): The file system URI.
        env (Mapping, optional): The file system settings.

    Raises:
        InvalidArgumentError: When the URI scheme is not supported.
        InvalidPathError: When the URI does not name a valid root.
        AlreadyExistsError: When a file system is already open for this root.

    Returns:
        ObjectFileSystem: The open file system.
    """
    parts = self._split_uri(uri)
    config = FileSystemConfig.from_env(env)
    if parts.netloc and not config.endpoint_url:
      config = config.model_copy(update={"endpoint_url": f"https://{parts.netloc}"})
    key_scheme = make_key_scheme(config)
    root_id = key_scheme.root_of(parts.path)
    if self.registry.contains(root_id):
      raise AlreadyExistsError(f"File system already open: {root_id}")
    file_system = ObjectFileSystem(self, root_id, config, self.client_factory(config), key_scheme,
                                   endpoint=parts.netloc or None)
    self.registry.register(root_id, file_system)
    return file_system

  def get_file_system(self, uri: str) -> ObjectFileSystem:
    """Get the open file system of the root named by an URI.

    Raises:
        FileSystemNotFoundError: When no file system is open for this root.
    """
    parts = self._split_uri(uri)
    return self.registry.get(PATH_SEPARATOR.join(self._uri_parts(parts.path)))

  def get_path(self, uri: str) -> VirtualPath:
    """Get the path named by an URI, e.g. "objectfs://s3.example.org/my-bucket/a/b.txt".

    Raises:
        FileSystemNotFoundError: When no open file system matches the URI.
    """
    parts = self._split_uri(uri)
    names = self._uri_parts(parts.path)
    for root_id in self.registry.roots():
      root_parts = root_id.split(PATH_SEPARATOR)
      if names[:len(root_parts)] == root_parts:
        return self.registry.get(root_id).get_path(PATH_SEPARATOR + PATH_SEPARATOR.join(names))
    raise FileSystemNotFoundError(f"No file system open for: {parts.path}")

  #
  # Directories
  #

  def new_directory_stream(self, directory: VirtualPath,
                           path_filter: Optional[Callable[[VirtualPath], bool]] = None) -> DirectoryListing:
    """List the immediate children of a directory, implicit directories included.

    Args:
        directory (VirtualPath): The directory path.
        path_filter (Callable, optional): Keeps the children for which it returns True.

    Returns:
        DirectoryListing: A one-shot iterator of the child paths.
    """
    file_system = self._file_system(directory)
    remote_key = file_system.remote_key(directory)
    prefix = f"{remote_key}{PATH_SEPARATOR}" if remote_key else ""
    return DirectoryListing(directory, prefix,
                            lambda: file_system.client.list_objects(file_system.scope, prefix),
                            file_system.cache, path_filter)

  def create_directory(self, directory: VirtualPath):
    """Create a directory by uploading an empty placeholder object.

    Args:
        directory (VirtualPath): The directory path.
    """
    file_system = self._file_system(directory)
    if not directory.segments:
      return
    key = f"{file_system.remote_key(directory)}{PATH_SEPARATOR}"
    file_system.client.upload_empty_marker(key, file_system.scope)
    file_system.cache.pop(directory)

  #
  # Streams and channels
  #

  def new_input_stream(self, path: VirtualPath, options: Iterable[OpenOption] = ()) -> BridgeChannel:
    """Open a file for reading.

    Raises:
        InvalidArgumentError: When options are given or the path is a root.
        NotFoundError: When the file does not exist.
    """
    if set(options):
      raise InvalidArgumentError(f"Input streams take no options: {path}")
    return self.new_byte_channel(path, {OpenOption.READ})

  def new_byte_channel(self, path: VirtualPath, options: Iterable[OpenOption] = ()) -> BridgeChannel:
    """Open a seekable byte channel over a local copy of a file.

    A channel opened with WRITE or APPEND uploads the local copy back when
    closed. The local copy is removed on close in any case.

    Args:
        path (VirtualPath): The file path.
        options (Iterable[OpenOption], optional): How to open the file, READ when empty.

    Raises:
        InvalidArgumentError: When the path is a root or options conflict.
        AlreadyExistsError: When CREATE_NEW is given and the file exists.
        NotFoundError: When the file does not exist and the channel is read-only.

    Returns:
        BridgeChannel: The open channel.
    """
    options = set(options)
    file_system = self._file_system(path)
    self._check_not_root(path)
    writable = OpenOption.WRITE in options or OpenOption.APPEND in options
    append = OpenOption.APPEND in options
    if append and (OpenOption.READ in options or OpenOption.TRUNCATE_EXISTING in options):
      raise InvalidArgumentError(f"APPEND cannot be combined with READ or TRUNCATE_EXISTING: {path}")
    if writable and OpenOption.CREATE_NEW in options and file_system.resolver.exists(path):
      raise AlreadyExistsError(f"File already exists: {path}")

    remote_key = file_system.remote_key(path)
    temp_dir = make_temp_dir(file_system.config.temp_dir)
    local_path = os.path.join(temp_dir, path.segments[-1])
    try:
      if writable and OpenOption.TRUNCATE_EXISTING in options:
        open(local_path, "wb").close()
      else:
        try:
          local_path = file_system.client.download(file_system.scope, remote_key, temp_dir)
        except NotFoundError:
          if not writable:
            raise
          open(local_path, "wb").close()
    except Exception:
      remove_temp_dir(temp_dir)
      raise
    logging.debug(f"Byte channel opened on {path}, writable: {writable}")
    return BridgeChannel(local_path, temp_dir, writable=writable, append=append,
                         upload=self._uploader(file_system, path))

  def new_output_stream(self, path: VirtualPath, options: Iterable[OpenOption] = ()) -> BridgeChannel:
    """Open a file for writing, its content is uploaded when the stream is closed.

    Args:
        path (VirtualPath): The file path.
        options (Iterable[OpenOption], optional): How to open the file, CREATE, TRUNCATE_EXISTING and WRITE when empty.

    Raises:
        InvalidArgumentError: When READ is given or the path is a root.
        UnsupportedOperationError: When an option other than CREATE, CREATE_NEW, TRUNCATE_EXISTING, WRITE or APPEND is given.
        AlreadyExistsError: When CREATE_NEW is given and the file exists.
        NotFoundError: When neither CREATE nor CREATE_NEW is given and the file does not exist.

    Returns:
        BridgeChannel: An output stream, or a byte channel when appending.
    """
    options = set(options) or set(DEFAULT_WRITE_OPTIONS)
    if OpenOption.READ in options:
      raise InvalidArgumentError(f"READ not allowed on an output stream: {path}")
    if OpenOption.APPEND in options:
      return self.new_byte_channel(path, options | {OpenOption.WRITE})
    unsupported = options - OUTPUT_STREAM_OPTIONS
    if unsupported:
      names = ", ".join(sorted(option.value for option in unsupported))
      raise UnsupportedOperationError(f"Unsupported output stream options: {names}")

    file_system = self._file_system(path)
    self._check_not_root(path)
    if OpenOption.CREATE_NEW in options:
      if file_system.resolver.exists(path):
        raise AlreadyExistsError(f"File already exists: {path}")
    elif OpenOption.CREATE not in options and not file_system.resolver.exists(path):
      raise NotFoundError(f"No such file: {path}")

    temp_dir = make_temp_dir(file_system.config.temp_dir)
    local_path = os.path.join(temp_dir, path.segments[-1])
    try:
      open(local_path, "wb").close()
    except OSError:
      remove_temp_dir(temp_dir)
      raise
    return UploadOutputStream(local_path, temp_dir, upload=self._uploader(file_system, path))

  #
  # Files
  #

  def delete(self, path: VirtualPath):
    """Delete a file or an empty directory.

    Args:
        path (VirtualPath): The path to delete.

    Raises:
        InvalidArgumentError: When the path is a root.
        NotFoundError: When nothing exists at the path.
        DirectoryNotEmptyError: When the path is a directory with children.
    """
    file_system = self._file_system(path)
    if not path.segments:
      raise InvalidArgumentError(f"Cannot delete a file system root: {path}")
    metadata = file_system.resolver.read_attributes(path)
    if metadata.is_directory:
      self._check_empty(file_system, path)
    remote_key = file_system.remote_key(path)
    # A key may hold both a file and a directory placeholder
    file_system.client.delete_object(file_system.scope, remote_key)
    file_system.client.delete_object(file_system.scope, f"{remote_key}{PATH_SEPARATOR}")
    file_system.cache.pop(path)

  def copy(self, source: VirtualPath, target: VirtualPath, *options: CopyOption):
    """Copy a file, remotely when both paths share the remote client.

    Copying a directory creates an empty target directory.

    Args:
        source (VirtualPath): The source path.
        target (VirtualPath): The target path.
        options (CopyOption): REPLACE_EXISTING to overwrite the target.

    Raises:
        InvalidArgumentError: When an option other than REPLACE_EXISTING is given.
        AlreadyExistsError: When the target exists and REPLACE_EXISTING is not given.
        NotFoundError: When the source does not exist.
    """
    if self.is_same_file(source, target):
      return
    replace = self._check_copy_options(options)
    source_fs = self._file_system(source)
    target_fs = self._file_system(target)
    if not replace and target_fs.resolver.exists(target):
      raise AlreadyExistsError(f"Target already exists: {target}")
    metadata = source_fs.resolver.read_attributes(source)
    if metadata.is_directory:
      self.create_directory(target)
      return
    self._check_not_root(target)
    if source_fs.client is target_fs.client:
      target_fs.client.copy_object(source_fs.scope, source_fs.remote_key(source),
                                   target_fs.scope, target_fs.remote_key(target),
                                   target_fs.upload_options(target), size=metadata.size)
    else:
      self._transfer(source_fs, source, target_fs, target)
    target_fs.cache.pop(target)

  def move(self, source: VirtualPath, target: VirtualPath, *options: CopyOption):
    """Move a file or an empty directory, by a copy followed by a deletion.

    Raises:
        InvalidArgumentError: When ATOMIC_MOVE is given.
        DirectoryNotEmptyError: When the source is a directory with children.
    """
    if CopyOption.ATOMIC_MOVE in options:
      raise InvalidArgumentError("Atomic move is not supported by object storage")
    if self.is_same_file(source, target):
      return
    source_fs = self._file_system(source)
    if source.segments and self.is_directory(source):
      self._check_empty(source_fs, source)
    self.copy(source, target, *options)
    self.delete(source)
    logging.info(f"Moved {source} to {target}")

  def download(self, path: VirtualPath, local_destination: str, *options: CopyOption):
    """Download a file, or a directory and its content, to the local disk.

    Args:
        path (VirtualPath): The remote path.
        local_destination (str): The local file or directory to create.
        options (CopyOption): REPLACE_EXISTING to overwrite a local file.

    Raises:
        AlreadyExistsError: When the destination exists and REPLACE_EXISTING is not given.
        NotFoundError: When nothing exists at the path.
    """
    replace = self._check_copy_options(options)
    file_system = self._file_system(path)
    if os.path.lexists(local_destination) and not replace:
      raise AlreadyExistsError(f"Local file already exists: {local_destination}")
    metadata = file_system.resolver.read_attributes(path)
    if metadata.is_directory:
      self._download_directory(file_system, path, local_destination)
      return
    parent = os.path.dirname(os.path.abspath(local_destination))
    temp_dir = make_temp_dir(parent)
    try:
      downloaded = file_system.client.download(file_system.scope, file_system.remote_key(path), temp_dir)
      os.replace(downloaded, local_destination)
    finally:
      remove_temp_dir(temp_dir)

  def upload(self, local_file: str, path: VirtualPath, *options: CopyOption):
    """Upload a local file, or a local directory and its content.

    Args:
        local_file (str): The local file or directory.
        path (VirtualPath): The remote path.
        options (CopyOption): REPLACE_EXISTING to overwrite a remote file.

    Raises:
        UnsupportedOperationError: When the local file is a symbolic link.
        NotFoundError: When the local file does not exist.
        AlreadyExistsError: When the remote path exists and REPLACE_EXISTING is not given.
    """
    replace = self._check_copy_options(options)
    if os.path.islink(local_file):
      raise UnsupportedOperationError(f"Symbolic links cannot be uploaded: {local_file}")
    if not os.path.exists(local_file):
      raise NotFoundError(f"No such local file: {local_file}")
    file_system = self._file_system(path)
    if not replace and file_system.resolver.exists(path):
      raise AlreadyExistsError(f"Target already exists: {path}")
    if os.path.isdir(local_file):
      self._upload_directory(file_system, local_file, path)
      return
    self._check_not_root(path)
    file_system.client.upload(local_file, file_system.remote_key(path), file_system.scope,
                              file_system.upload_options(path))
    file_system.cache.pop(path)

  #
  # Attributes
  #

  def exists(self, path: VirtualPath) -> bool:
    """Check a file or a directory exists at the specified path.

    Returns:
        bool: True if the path exists, False otherwise.
    """
    return self._file_system(path).resolver.exists(path)

  def read_attributes(self, path: VirtualPath) -> ObjectMetadata:
    """Get the attributes of a file or a directory.

    Raises:
        NotFoundError: When nothing exists at the path.
    """
    return self._file_system(path).resolver.read_attributes(path)

  def is_directory(self, path: VirtualPath) -> bool:
    try:
      return self.read_attributes(path).is_directory
    except NotFoundError:
      return False

  def is_regular_file(self, path: VirtualPath) -> bool:
    try:
      return self.read_attributes(path).is_regular_file
    except NotFoundError:
      return False

  def is_same_file(self, path: VirtualPath, other: VirtualPath) -> bool:
    path, other = check_path(path), check_path(other)
    return path.is_absolute() and other.is_absolute() and path == other

  def is_hidden(self, path: VirtualPath) -> bool:
    return False

  def check_access(self, path: VirtualPath, *modes: AccessMode):
    """Check a path exists. Object storage has no permissions, access modes are not checked.

    Raises:
        InvalidArgumentError: When the path is relative.
        NotFoundError: When nothing exists at the path.
    """
    path = to_absolute_path(check_path(path))
    if not self.exists(path):
      raise NotFoundError(f"No such file or directory: {path}")

  #
  # Unsupported operations
  #

  def create_symbolic_link(self, link: VirtualPath, target: VirtualPath):
    raise UnsupportedOperationError("Symbolic links are not supported")

  def new_watch_service(self):
    raise UnsupportedOperationError("Watch services are not supported")

  def read_attributes_map(self, path: VirtualPath, attributes: str):
    raise UnsupportedOperationError("Attribute views are not supported")

  def set_attribute(self, path: VirtualPath, attribute: str, value):
    raise UnsupportedOperationError("Attributes cannot be set")

  def get_file_store(self, path: VirtualPath):
    raise UnsupportedOperationError("File stores are not supported")

  def to_real_path(self, path: VirtualPath):
    raise UnsupportedOperationError("Real paths are not supported")

  #
  # Private methods
  #

  def _file_system(self, path: VirtualPath) -> ObjectFileSystem:
    path = check_path(path)
    if not path.is_absolute():
      raise InvalidArgumentError(f"Path must be absolute: {path}")
    return self.registry.get(path.root)

  def _split_uri(self, uri: str) -> urllib.parse.SplitResult:
    parts = urllib.parse.urlsplit(uri)
    if parts.scheme != self.scheme:
      raise InvalidArgumentError(f"URI scheme must be '{self.scheme}': {uri}")
    return parts

  @staticmethod
  def _uri_parts(uri_path: str) -> List[str]:
    return [part for part in uri_path.split(PATH_SEPARATOR) if part]

  @staticmethod
  def _check_not_root(path: VirtualPath):
    if not path.segments:
      raise InvalidArgumentError(f"A file system root is not a file: {path}")

  def _check_empty(self, file_system: ObjectFileSystem, directory: VirtualPath):
    with self.new_directory_stream(directory) as children:
      child = next(children, None)
    if child is not None:
      # The listing left the child attributes behind
      file_system.cache.pop(child)
      raise DirectoryNotEmptyError(f"Directory not empty: {directory}")

  @staticmethod
  def _check_copy_options(options: Iterable[CopyOption]) -> bool:
    options = set(options)
    invalid = options - {CopyOption.REPLACE_EXISTING}
    if invalid:
      names = ", ".join(sorted(option.value for option in invalid))
      raise InvalidArgumentError(f"Unsupported copy options: {names}")
    return CopyOption.REPLACE_EXISTING in options

  @staticmethod
  def _uploader(file_system: ObjectFileSystem, path: VirtualPath) -> Callable[[str], int]:
    remote_key = file_system.remote_key(path)

    def upload(local_path: str) -> int:
      size = file_system.client.upload(local_path, remote_key, file_system.scope,
                                       file_system.upload_options(path))
      file_system.cache.pop(path)
      return size
    return upload

  def _transfer(self, source_fs: ObjectFileSystem, source: VirtualPath,
                target_fs: ObjectFileSystem, target: VirtualPath):
    temp_dir = make_temp_dir(target_fs.config.temp_dir)
    try:
      local_path = source_fs.client.download(source_fs.scope, source_fs.remote_key(source), temp_dir)
      target_fs.client.upload(local_path, target_fs.remote_key(target), target_fs.scope,
                              target_fs.upload_options(target))
    finally:
      remove_temp_dir(temp_dir)

  def _download_directory(self, file_system: ObjectFileSystem, directory: VirtualPath, local_dir: str):
    remote_key = file_system.remote_key(directory)
    prefix = f"{remote_key}{PATH_SEPARATOR}" if remote_key else ""
    os.makedirs(local_dir, exist_ok=True)
    for entry in file_system.client.list_objects(file_system.scope, prefix):
      relative = entry.key[len(prefix):]
      parts = [part for part in relative.split(PATH_SEPARATOR) if part]
      if not entry.key.startswith(prefix) or not parts:
        continue
      if relative.endswith(PATH_SEPARATOR):
        os.makedirs(os.path.join(local_dir, *parts), exist_ok=True)
        continue
      target_dir = os.path.join(local_dir, *parts[:-1])
      os.makedirs(target_dir, exist_ok=True)
      file_system.client.download(file_system.scope, entry.key, target_dir)

  def _upload_directory(self, file_system: ObjectFileSystem, local_dir: str, directory: VirtualPath):
    self.create_directory(directory)
    for dir_path, dir_names, file_names in os.walk(local_dir):
      relative = os.path.relpath(dir_path, local_dir)
      parts = [] if relative == os.curdir else relative.split(os.sep)
      current = VirtualPath(root=directory.root, segments=directory.segments + tuple(parts))
      for dir_name in dir_names:
        if not os.path.islink(os.path.join(dir_path, dir_name)):
          self.create_directory(VirtualPath(root=current.root, segments=current.segments + (dir_name,)))
      for file_name in file_names:
        local_path = os.path.join(dir_path, file_name)
        if os.path.islink(local_path):
          logging.warning(f"Skipping symbolic link {local_path}")
          continue
        child = VirtualPath(root=current.root, segments=current.segments + (file_name,))
        file_system.client.upload(local_path, file_system.remote_key(child), file_system.scope,
                                  file_system.upload_options(child))
        file_system.cache.pop(child)
