import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from objectfs.api.files import make_router, to_http_error
from objectfs.errors import (AlreadyExistsError, DirectoryNotEmptyError, InternalError, InvalidPathError,
                             NotFoundError, TransportError, UnsupportedOperationError)

URI = "objectfs://s3.example.org/files"


@pytest.fixture
def api(provider, file_system):
    """Create a test client serving the files of the "files" bucket."""
    app = FastAPI()
    app.include_router(make_router(provider, URI))
    return TestClient(app)


class TestFilesApi:
    """Test suite for the files routes."""

    def test_list(self, api, client):
        client.put("files", "reports/out.txt", b"results")
        client.put("files", "reports/plots/fig.png", b"png")
        response = api.get("/files/list", params={"path": "reports"})
        assert response.status_code == 200
        nodes = {node["name"]: node for node in response.json()}
        assert set(nodes) == {"out.txt", "plots"}
        assert nodes["out.txt"]["is_file"]
        assert nodes["out.txt"]["size"] == 7
        assert nodes["out.txt"]["mime_type"] == "text/plain"
        assert nodes["out.txt"]["path"] == "/files/reports/out.txt"
        assert not nodes["plots"]["is_file"]
        assert nodes["plots"]["size"] == 0

    def test_list_root(self, api, client):
        client.put("files", "a.txt")
        response = api.get("/files/list")
        assert response.status_code == 200
        assert [node["name"] for node in response.json()] == ["a.txt"]

    def test_list_file(self, api, client):
        client.put("files", "a.txt")
        assert api.get("/files/list", params={"path": "a.txt"}).status_code == 400

    def test_stat_missing(self, api):
        response = api.get("/files/stat", params={"path": "missing.txt"})
        assert response.status_code == 404

    def test_content(self, api, client):
        client.put("files", "a/b.json", b'{"a": 1}')
        response = api.get("/files/content", params={"path": "a/b.json"})
        assert response.status_code == 200
        assert response.content == b'{"a": 1}'
        assert response.headers["content-type"] == "application/json"

    def test_upload(self, api, client):
        response = api.post("/files/upload", data={"folder": "docs"},
                            files={"file": ("notes.txt", b"hello", "text/plain")})
        assert response.status_code == 200
        assert response.json()["path"] == "/files/docs/notes.txt"
        assert client.content("files", "docs/notes.txt") == b"hello"

    def test_upload_too_large(self, provider, client, tmp_path):
        provider.new_file_system("objectfs:///small", {"max_upload_size": 2, "temp_dir": str(tmp_path)})
        app = FastAPI()
        app.include_router(make_router(provider, "objectfs:///small"))
        response = TestClient(app).post("/files/upload", files={"file": ("a.txt", b"hello", "text/plain")})
        assert response.status_code == 400
        assert client.objects == {}

    def test_upload_outside_folder(self, api, client):
        """Test file names cannot climb out of the upload folder."""
        response = api.post("/files/upload", data={"folder": "docs"},
                            files={"file": ("..", b"hello", "text/plain")})
        assert response.status_code == 400
        assert client.objects == {}

    def test_paths_stay_under_root(self, api, client):
        client.put("files", "a.txt", b"abc")
        response = api.get("/files/stat", params={"path": "../../a.txt"})
        assert response.status_code == 200
        assert response.json()["path"] == "/files/a.txt"

    def test_mkdir_and_delete(self, api, client):
        assert api.post("/files/mkdir", params={"path": "a"}).status_code == 201
        assert client.content("files", "a/") == b""
        assert api.delete("/files", params={"path": "a"}).status_code == 204
        assert ("files", "a/") not in client.objects

    def test_delete_non_empty(self, api, client):
        client.put("files", "a/b.txt", b"abc")
        assert api.delete("/files", params={"path": "a"}).status_code == 409

    def test_copy(self, api, client):
        client.put("files", "a.txt", b"abc")
        response = api.post("/files/copy", params={"source": "a.txt", "target": "b.txt"})
        assert response.status_code == 200
        assert response.json()["name"] == "b.txt"
        assert api.post("/files/copy", params={"source": "a.txt", "target": "b.txt"}).status_code == 409
        response = api.post("/files/copy", params={"source": "a.txt", "target": "b.txt", "replace": True})
        assert response.status_code == 200

    def test_move(self, api, client):
        client.put("files", "a.txt", b"abc")
        response = api.post("/files/move", params={"source": "a.txt", "target": "c/a.txt"})
        assert response.status_code == 200
        assert client.content("files", "c/a.txt") == b"abc"
        assert ("files", "a.txt") not in client.objects

    def test_transport_error(self, api, client):
        client.fail_listing = True
        assert api.get("/files/stat", params={"path": "a.txt"}).status_code == 502

    def test_closed_file_system(self, api, file_system):
        file_system.close()
        assert api.get("/files/stat", params={"path": "a.txt"}).status_code == 404


class TestErrorTranslation:
    """Test suite for the translation of file system errors to HTTP errors."""

    @pytest.mark.parametrize("error, status_code", [
        (InvalidPathError("bad"), 400),
        (NotFoundError("missing"), 404),
        (AlreadyExistsError("exists"), 409),
        (DirectoryNotEmptyError("not empty"), 409),
        (UnsupportedOperationError("no"), 501),
        (TransportError("down"), 502),
        (InternalError("bug"), 500),
    ])
    def test_status(self, error, status_code):
        exception = to_http_error(error)
        assert exception.status_code == status_code
        assert exception.detail == str(error)
