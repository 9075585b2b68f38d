from fastapi.exceptions import HTTPException
from fastapi.datastructures import UploadFile
from ..models.files import FileNode, ObjectMetadata
from ..models.paths import VirtualPath
import mimetypes
import os

# 100 MB in binary
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(file_name: str) -> str:
    """Guess the mime type from file name.

    Args:
        file_name (str): The file name.

    Returns:
        str: A standard mime type string.
    """
    mime_type, encoding = mimetypes.guess_type(file_name)
    if mime_type is None:
        if file_name.endswith('.webp'):
            mime_type = 'image/webp'
        else:
            mime_type = DEFAULT_MIME_TYPE
    return mime_type


class FileChecker:
    """A class that checks the size of uploaded files
    """

    def __init__(self, max_size: int = DEFAULT_MAX_FILE_SIZE):
        self.max_size = max_size

    def check_size(self, file: UploadFile) -> UploadFile:
        file.file.seek(0, os.SEEK_END)
        file_size = file.file.tell()
        file.file.seek(0)
        if file_size > self.max_size:
            detail = f"File size {file_size} exceeds max size {self.max_size}"
            raise HTTPException(400, detail=detail)
        return file


class FileNodeBuilder:
    """Makes the file node describing a virtual path and its attributes
    """

    def __init__(self, name, path=None, size=None, mime_type=None, etag=None, last_modified=None, is_file=False):
        self.root = FileNode(name=name,
                             path=path,
                             size=size,
                             mime_type=mime_type,
                             etag=etag,
                             last_modified=last_modified,
                             is_file=is_file)

    @classmethod
    def from_metadata(cls, path: VirtualPath, metadata: ObjectMetadata):
        """Make a file node from the attributes of a path.

        Args:
            path (VirtualPath): The path
            metadata (ObjectMetadata): The attributes of the path

        Returns:
            FileNodeBuilder: The builder
        """
        name = path.segments[-1] if path.segments else str(path)
        is_file = metadata.is_regular_file and not metadata.is_directory
        return cls(name=name,
                   path=str(path),
                   size=metadata.size,
                   mime_type=get_mime_type(name) if is_file else None,
                   etag=metadata.etag,
                   last_modified=metadata.last_modified,
                   is_file=is_file)

    def add_child(self, node: FileNode):
        self.root.children.append(node)
        return self

    def build(self) -> FileNode:
        """Get the file node.

        Returns:
            FileNode: The file node
        """
        return self.root

