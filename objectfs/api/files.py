from typing import List
from contextlib import contextmanager
from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from ..errors import (FileSystemError, InvalidPathError, InvalidArgumentError, NotFoundError, AlreadyExistsError,
                      DirectoryNotEmptyError, UnsupportedOperationError, TransportError)
from ..models.files import FileNode
from ..models.options import CopyOption
from ..models.paths import VirtualPath
from ..services.files import ObjectFileSystem, ObjectFileSystemProvider
from ..utils.files import FileChecker, FileNodeBuilder, get_mime_type
from ..utils.paths import normalize, resolve
import logging
import shutil

ERROR_STATUS = [
    (InvalidPathError, status.HTTP_400_BAD_REQUEST),
    (InvalidArgumentError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (DirectoryNotEmptyError, status.HTTP_409_CONFLICT),
    (UnsupportedOperationError, status.HTTP_501_NOT_IMPLEMENTED),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
]


def to_http_error(error: FileSystemError) -> HTTPException:
    """Translate a file system error to a HTTP error.

    Args:
        error (FileSystemError): The file system error.

    Returns:
        HTTPException: The HTTP error, status 500 for errors with no known status.
    """
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@contextmanager
def http_errors():
    try:
        yield
    except FileSystemError as e:
        logging.info(f"File system error: {e}")
        raise to_http_error(e) from e


def make_router(provider: ObjectFileSystemProvider, uri: str, prefix: str = "/files") -> APIRouter:
    """Make the routes serving the files of an open file system.

    Paths given to the routes are relative to the file system root, and are
    never resolved outside of it.

    Args:
        provider (ObjectFileSystemProvider): The provider the file system is open with.
        uri (str): The URI of the file system.
        prefix (str, optional): The routes prefix. Defaults to "/files".

    Returns:
        APIRouter: The router.
    """
    router = APIRouter(prefix=prefix, tags=["files"])

    def get_file_system() -> ObjectFileSystem:
        return provider.get_file_system(uri)

    def to_path(file_system: ObjectFileSystem, path: str) -> VirtualPath:
        root = file_system.root_directories[0]
        return normalize(resolve(root, path.lstrip("/"), scheme=file_system.key_scheme))

    def stat(path: VirtualPath) -> FileNode:
        metadata = provider.read_attributes(path)
        return FileNodeBuilder.from_metadata(path, metadata).build()

    @router.get("/list", response_model=List[FileNode])
    def list_files(path: str = ""):
        with http_errors():
            directory = to_path(get_file_system(), path)
            if not provider.read_attributes(directory).is_directory:
                raise InvalidArgumentError(f"Not a directory: {directory}")
            with provider.new_directory_stream(directory) as children:
                return [stat(child) for child in children]

    @router.get("/stat", response_model=FileNode)
    def stat_file(path: str):
        with http_errors():
            return stat(to_path(get_file_system(), path))

    @router.get("/content")
    def get_content(path: str):
        with http_errors():
            file_path = to_path(get_file_system(), path)
            with provider.new_input_stream(file_path) as channel:
                content = channel.read()
            return Response(content=content, media_type=get_mime_type(file_path.segments[-1]))

    @router.post("/upload", response_model=FileNode)
    def upload_file(file: UploadFile = File(...), folder: str = Form("")):
        with http_errors():
            file_system = get_file_system()
            FileChecker(file_system.config.max_upload_size).check_size(file)
            directory = to_path(file_system, folder)
            file_path = normalize(resolve(directory, file.filename or "", scheme=file_system.key_scheme))
            if len(file_path.segments) != len(directory.segments) + 1:
                raise InvalidPathError(f"Invalid file name: {file.filename}")
            with provider.new_output_stream(file_path) as output:
                shutil.copyfileobj(file.file, output)
            return stat(file_path)

    @router.post("/mkdir", status_code=status.HTTP_201_CREATED)
    def make_directory(path: str):
        with http_errors():
            provider.create_directory(to_path(get_file_system(), path))

    @router.delete("", status_code=status.HTTP_204_NO_CONTENT)
    def delete_file(path: str):
        with http_errors():
            provider.delete(to_path(get_file_system(), path))

    @router.post("/copy", response_model=FileNode)
    def copy_file(source: str, target: str, replace: bool = False):
        with http_errors():
            file_system = get_file_system()
            target_path = to_path(file_system, target)
            options = [CopyOption.REPLACE_EXISTING] if replace else []
            provider.copy(to_path(file_system, source), target_path, *options)
            return stat(target_path)

    @router.post("/move", response_model=FileNode)
    def move_file(source: str, target: str, replace: bool = False):
        with http_errors():
            file_system = get_file_system()
            target_path = to_path(file_system, target)
            options = [CopyOption.REPLACE_EXISTING] if replace else []
            provider.move(to_path(file_system, source), target_path, *options)
            return stat(target_path)

    return router
