from typing import Dict, List
from ..errors import AlreadyExistsError, FileSystemNotFoundError
import logging
import threading


class RootRegistry:
    """The open file systems of a provider, by namespace root id."""

    def __init__(self):
        self._roots: Dict[str, object] = {}
        self._lock = threading.Lock()

    def register(self, root_id: str, file_system):
        """Register an open file system.

        Raises:
            AlreadyExistsError: When a file system is already open for this root.
        """
        with self._lock:
            if root_id in self._roots:
                raise AlreadyExistsError(f"File system already open: {root_id}")
            self._roots[root_id] = file_system
        logging.info(f"File system opened: {root_id}")

    def get(self, root_id: str):
        """Get the open file system of a root.

        Raises:
            FileSystemNotFoundError: When no file system is open for this root.
        """
        with self._lock:
            file_system = self._roots.get(root_id)
        if file_system is None:
            raise FileSystemNotFoundError(f"File system not open: {root_id}")
        return file_system

    def remove(self, root_id: str) -> bool:
        with self._lock:
            removed = self._roots.pop(root_id, None) is not None
        if removed:
            logging.info(f"File system closed: {root_id}")
        return removed

    def contains(self, root_id: str) -> bool:
        with self._lock:
            return root_id in self._roots

    def roots(self) -> List[str]:
        with self._lock:
            return list(self._roots)
