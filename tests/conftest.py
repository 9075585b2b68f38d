import os
import pytest
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from objectfs.errors import NotFoundError, TransportError
from objectfs.models.files import RemoteListingEntry, UploadOptions
from objectfs.services import ObjectFileSystemProvider, RemoteObjectClient

LAST_MODIFIED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryObjectClient(RemoteObjectClient):
    """A remote object client keeping objects in a dict, recording the calls it receives."""

    def __init__(self):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.etags: Dict[Tuple[str, str], str] = {}
        self.list_calls: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str, Optional[UploadOptions]]] = []
        self.copies: List[Tuple[str, str, str, str, Optional[UploadOptions], Optional[int]]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.fail_listing = False
        self.fail_upload = False

    def put(self, scope: str, key: str, content: bytes = b"", etag: Optional[str] = None):
        self.objects[(scope, key)] = content
        self.etags[(scope, key)] = etag or f"etag-{key}"

    def content(self, scope: str, key: str) -> bytes:
        return self.objects[(scope, key)]

    def list_objects(self, scope: str, key_prefix: str) -> List[RemoteListingEntry]:
        self.list_calls.append((scope, key_prefix))
        if self.fail_listing:
            raise TransportError("listing failed")
        return [self._entry(scope, key, content) for (object_scope, key), content in sorted(self.objects.items())
                if object_scope == scope and key.startswith(key_prefix)]

    def get_object(self, scope: str, key: str) -> RemoteListingEntry:
        if (scope, key) not in self.objects:
            raise NotFoundError(f"{scope}/{key}")
        return self._entry(scope, key, self.objects[(scope, key)])

    def download(self, scope: str, key: str, local_dir: str) -> str:
        if (scope, key) not in self.objects:
            raise NotFoundError(f"{scope}/{key}")
        local_path = os.path.join(local_dir, os.path.basename(key.rstrip("/")))
        with open(local_path, "wb") as f:
            f.write(self.objects[(scope, key)])
        return local_path

    def upload(self, local_path: str, key: str, scope: str, options: Optional[UploadOptions] = None) -> int:
        if self.fail_upload:
            raise TransportError("upload failed")
        with open(local_path, "rb") as f:
            content = f.read()
        self.put(scope, key, content)
        self.uploads.append((scope, key, options))
        return len(content)

    def upload_empty_marker(self, key: str, scope: str) -> bool:
        self.put(scope, key)
        return True

    def delete_object(self, scope: str, key: str) -> bool:
        self.deleted.append((scope, key))
        self.etags.pop((scope, key), None)
        return self.objects.pop((scope, key), None) is not None

    def copy_object(self, source_scope: str, source_key: str, target_scope: str, target_key: str,
                    options: Optional[UploadOptions] = None, size: Optional[int] = None) -> bool:
        if (source_scope, source_key) not in self.objects:
            raise NotFoundError(f"{source_scope}/{source_key}")
        self.put(target_scope, target_key, self.objects[(source_scope, source_key)])
        self.copies.append((source_scope, source_key, target_scope, target_key, options, size))
        return True

    def _entry(self, scope: str, key: str, content: bytes) -> RemoteListingEntry:
        return RemoteListingEntry(key=key, last_modified=LAST_MODIFIED, etag=self.etags.get((scope, key)),
                                  size=len(content))


@pytest.fixture
def client():
    """Create an empty in-memory object client."""
    return InMemoryObjectClient()


@pytest.fixture
def provider(client):
    """Create a provider whose file systems all use the in-memory client."""
    return ObjectFileSystemProvider(client_factory=lambda config: client)


@pytest.fixture
def file_system(provider, tmp_path):
    """Open the bucket "files" with temporary files under the test directory."""
    return provider.new_file_system("objectfs://s3.example.org/files", {"temp_dir": str(tmp_path)})


@pytest.fixture
def scoped_file_system(provider, tmp_path):
    """Open the "/storage/files" root of the scoped key scheme."""
    return provider.new_file_system("objectfs:///storage/files",
                                    {"key_scheme": "scoped", "temp_dir": str(tmp_path)})


@pytest.fixture
def other_client():
    """Create a second in-memory object client, for file systems of another store."""
    return InMemoryObjectClient()
