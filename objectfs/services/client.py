from typing import List, Optional
from ..models.files import RemoteListingEntry, UploadOptions

class RemoteObjectClient:
  """
  This service provides the remote calls the virtual file system is built on.
  It is an abstraction layer over flat object stores such as S3: objects are
  addressed by key within a scope (a bucket, or a storage scope) and there
  are no folders.
  """

  def list_objects(self, scope: str, key_prefix: str) -> List[RemoteListingEntry]:
    """List all the objects whose key starts with a prefix, at any depth.

    Args:
        scope (str): The scope id of the call.
        key_prefix (str): The key prefix, no delimiter is applied.

    Returns:
        List[RemoteListingEntry]: The matching objects.
    """
    pass

  def get_object(self, scope: str, key: str) -> RemoteListingEntry:
    """Get the description of a single object.

    Args:
        scope (str): The scope id of the call.
        key (str): The object key.

    Raises:
        NotFoundError: When no object has this key.

    Returns:
        RemoteListingEntry: The object description.
    """
    pass

  def download(self, scope: str, key: str, local_dir: str) -> str:
    """Download an object into a local directory.

    Args:
        scope (str): The scope id of the call.
        key (str): The object key.
        local_dir (str): The local directory to download the object to.

    Raises:
        NotFoundError: When no object has this key.

    Returns:
        str: The path of the downloaded local file.
    """
    pass

  def upload(self, local_path: str, key: str, scope: str, options: Optional[UploadOptions] = None) -> int:
    """Upload a local file as an object, replacing any object with the same key.

    Args:
        local_path (str): The path of the local file.
        key (str): The object key.
        scope (str): The scope id of the call.
        options (UploadOptions, optional): The content type, tags and storage class of the object.

    Returns:
        int: The size in bytes of the uploaded object.
    """
    pass

  def upload_empty_marker(self, key: str, scope: str) -> bool:
    """Upload a zero length object, used as a directory placeholder.

    Args:
        key (str): The object key, ending with the separator.
        scope (str): The scope id of the call.

    Returns:
        bool: True if the marker was uploaded.
    """
    pass

  def delete_object(self, scope: str, key: str) -> bool:
    """Delete an object, best effort.

    Args:
        scope (str): The scope id of the call.
        key (str): The object key.

    Returns:
        bool: True if the deletion was acknowledged.
    """
    pass

  def copy_object(self, source_scope: str, source_key: str, target_scope: str, target_key: str,
                  options: Optional[UploadOptions] = None, size: Optional[int] = None) -> bool:
    """Copy an object remotely.

    Args:
        source_scope (str): The scope id of the source object.
        source_key (str): The source object key.
        target_scope (str): The scope id of the target object.
        target_key (str): The target object key.
        options (UploadOptions, optional): The content type, tags and storage class of the copy.
        size (int, optional): The size of the source object, if known.

    Returns:
        bool: True if the copy was acknowledged.
    """
    pass
