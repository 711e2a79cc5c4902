"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from dedupstore.api import create_app
from dedupstore.file import ContentHasher
from dedupstore.service import FileService

PAYLOAD = b"bytes=hello.txt:ABC"


@pytest.fixture
def client(config, archive):
    app = create_app(FileService(config, archive=archive))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def client_without_archive(config):
    app = create_app(FileService(config))
    with TestClient(app) as test_client:
        yield test_client


def upload(client, payload=PAYLOAD, filename="hello.txt"):
    response = client.post("/files", files={"file": (filename, payload, "text/plain")})
    assert response.status_code == 200
    return response.json()


class TestGeneral:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_stats(self, client):
        upload(client)

        stats = client.get("/stats").json()
        assert stats["blobs"] == 1
        assert stats["records"] == 1
        assert stats["index"]["elements"] == 1


class TestUpload:

    def test_upload_then_duplicate(self, client):
        first = upload(client)
        second = upload(client)

        assert first["alreadyExisted"] is False
        assert second["alreadyExisted"] is True
        assert first["fileId"] != second["fileId"]
        assert second["filename"] == "hello.txt"
        assert second["message"] == "File uploaded successfully."

    def test_empty_upload_rejected(self, client):
        response = client.post("/files", files={"file": ("empty.txt", b"", "text/plain")})

        assert response.status_code == 400

    def test_missing_file_field(self, client):
        response = client.post("/files")

        assert response.status_code == 422


class TestDownload:

    def test_local_download_streams_content(self, client):
        file_id = upload(client, filename="report final.txt")["fileId"]

        response = client.get(f"/files/{file_id}/download/local")

        assert response.status_code == 200
        assert response.content == PAYLOAD
        assert response.headers["content-disposition"] == (
            "attachment; filename*=UTF-8''report%20final.txt"
        )
        assert response.headers["content-type"].startswith("text/plain")

    def test_staging_area(self, client, archive):
        file_id = upload(client)["fileId"]
        content_hash = ContentHasher().hash(PAYLOAD)

        response = client.get(
            f"/files/{file_id}/download/staging-area", params={"type": "user", "id": "42"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "fileId": file_id,
            "filename": "hello.txt",
            "location": f"https://fake-bucket.example/user/42/{content_hash}.txt",
        }
        assert f"user/42/{content_hash}.txt" in archive.objects

    def test_staging_area_missing_params(self, client):
        file_id = upload(client)["fileId"]

        response = client.get(f"/files/{file_id}/download/staging-area")

        assert response.status_code == 400

    def test_staging_area_without_archive(self, client_without_archive):
        file_id = upload(client_without_archive)["fileId"]

        response = client_without_archive.get(
            f"/files/{file_id}/download/staging-area", params={"type": "user", "id": "1"}
        )

        assert response.status_code == 502

    @pytest.mark.parametrize("way", ["google-cloud", "carrier-pigeon"])
    def test_unsupported_way(self, client, way):
        file_id = upload(client)["fileId"]

        response = client.get(f"/files/{file_id}/download/{way}")

        assert response.status_code == 400

    def test_unknown_file(self, client):
        response = client.get("/files/no-such-id/download/local")

        assert response.status_code == 404
        assert "no-such-id" in response.json()["detail"]


class TestDelete:

    def test_delete_removes_shared_content(self, client):
        first = upload(client)["fileId"]
        second = upload(client)["fileId"]

        response = client.delete(f"/files/{first}")

        assert response.status_code == 200
        assert response.json()["recordsRemoved"] == 2
        assert client.get(f"/files/{second}/download/local").status_code == 404

    def test_delete_unknown(self, client):
        assert client.delete("/files/no-such-id").status_code == 404

    def test_delete_all(self, client):
        upload(client, b"one", "one.txt")
        upload(client, b"two", "two.txt")

        response = client.delete("/files")

        assert response.status_code == 200
        assert response.json()["blobsRemoved"] == 2
        assert response.json()["recordsRemoved"] == 2
        assert client.get("/stats").json()["blobs"] == 0

    def test_storage_failure_is_500(self, client, monkeypatch):
        file_id = upload(client)["fileId"]

        from dedupstore.api import rest

        async def broken_read(*args, **kwargs):
            raise OSError("disk gone")

        monkeypatch.setattr(rest._service.blobs, "read_file", broken_read)

        assert client.delete(f"/files/{file_id}").status_code == 500


class TestArchive:

    def test_list_user_files(self, client):
        file_id = upload(client, filename="my notes.txt")["fileId"]
        client.get(
            f"/files/{file_id}/download/staging-area", params={"type": "user", "id": "9"}
        )

        response = client.get("/archive/users/9")

        assert response.status_code == 200
        files = response.json()
        assert len(files) == 1
        assert files[0]["originalName"] == "my notes.txt"
        assert files[0]["size"] == f"{len(PAYLOAD):.2f} Bytes"
        assert files[0]["lastModified"] is None

    def test_empty_listing(self, client):
        assert client.get("/archive/users/nobody").json() == []

    def test_missing_metadata_is_502(self, client, archive):
        archive.objects["user/9/x.bin"] = b"x"
        archive.metadata["user/9/x.bin"] = {}

        assert client.get("/archive/users/9").status_code == 502
