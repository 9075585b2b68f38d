from typing import Callable, Optional
from ..errors import ClosedChannelError, UnsupportedOperationError
import logging
import os
import shutil
import tempfile

TEMP_PREFIX = "objectfs-"


def make_temp_dir(parent: Optional[str] = None) -> str:
    """Create a private temporary directory holding one bridge file.

    Args:
        parent (str, optional): The directory to create it in, the system temp directory when None.

    Returns:
        str: The path of the new directory.
    """
    return tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=parent)


def remove_temp_dir(temp_dir: str):
    try:
        shutil.rmtree(temp_dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.warning(f"Could not remove temporary directory {temp_dir}: {e}")


class BridgeChannel:
    """A seekable byte channel over a local copy of a remote object.

    Reads and writes go to a file in a private temporary directory. Closing a
    writable channel uploads the file back, then the file and its directory are
    removed whatever the upload outcome. A read-only channel is never uploaded,
    its local copy cannot differ from the remote object. Closing twice does nothing.
    """

    def __init__(self, local_path: str, temp_dir: str, writable: bool = False, append: bool = False,
                 upload: Optional[Callable[[str], object]] = None):
        """Open a channel over an existing local file.

        Args:
            local_path (str): The local bridge file.
            temp_dir (str): The private directory of the bridge file, removed on close.
            writable (bool, optional): Whether the channel accepts writes and uploads on close.
            append (bool, optional): Whether every write goes to the end of the file.
            upload (Callable, optional): Called with the local file path when closing a writable channel.
        """
        self.local_path = local_path
        self.temp_dir = temp_dir
        self.append = append
        self._writable = writable
        self._upload = upload
        self._closed = False
        try:
            self._file = open(local_path, "r+b" if writable else "rb")
        except OSError:
            remove_temp_dir(temp_dir)
            raise
        if append:
            self._file.seek(0, os.SEEK_END)

    def readable(self) -> bool:
        return not self._closed

    def writable(self) -> bool:
        return self._writable and not self._closed

    def seekable(self) -> bool:
        return not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def is_open(self) -> bool:
        return not self._closed

    def read(self, size: int = -1) -> bytes:
        self._check_open()
        return self._file.read(size)

    def write(self, data: bytes) -> int:
        self._check_writable()
        if self.append:
            self._file.seek(0, os.SEEK_END)
        return self._file.write(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        self._check_open()
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        self._check_open()
        return self._file.tell()

    def truncate(self, size: Optional[int] = None) -> int:
        self._check_writable()
        position = self._file.tell()
        size = self._file.truncate(size)
        # Truncating never moves the position forward
        if position > size:
            self._file.seek(size)
        return size

    def size(self) -> int:
        self._check_open()
        self._file.flush()
        return os.fstat(self._file.fileno()).st_size

    def flush(self):
        self._check_open()
        self._file.flush()

    def close(self):
        """Close the channel, upload the local file when writable and remove it.

        Read-only channels skip the upload and only remove the local file.

        Raises:
            TransportError: When the upload fails, after the local file is removed.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._file.close()
            if self._writable and self._upload is not None:
                self._upload(self.local_path)
        except Exception as e:
            logging.error(f"Failed to upload {self.local_path} on close: {e}")
            raise
        finally:
            remove_temp_dir(self.temp_dir)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _check_open(self):
        if self._closed:
            raise ClosedChannelError(f"Channel is closed: {self.local_path}")

    def _check_writable(self):
        self._check_open()
        if not self._writable:
            raise UnsupportedOperationError(f"Channel is not writable: {self.local_path}")


class UploadOutputStream(BridgeChannel):
    """A write-only stream buffered in a local file, uploaded when closed."""

    def __init__(self, local_path: str, temp_dir: str, upload: Callable[[str], object]):
        super().__init__(local_path, temp_dir, writable=True, upload=upload)

    def readable(self) -> bool:
        return False

    def read(self, size: int = -1) -> bytes:
        raise UnsupportedOperationError("Output stream is not readable")
