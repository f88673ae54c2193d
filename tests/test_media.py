"""
Tests for uploads, the media library and media sync.
"""

from __future__ import annotations

import base64
import io
import os

from portfolio_cms.models import Media
from portfolio_cms.uploads import subdir_for

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def data_url(content: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(content).decode()}"


def stored_path(app, url: str) -> str:
    return os.path.join(app.config["UPLOAD_FOLDER"], url[len("/uploads/"):])


class TestSubdirs:
    def test_subdir_for(self) -> None:
        assert subdir_for("image/png") == "images"
        assert subdir_for("application/pdf") == "documents"
        assert subdir_for("text/plain") == "documents"
        assert subdir_for("video/mp4") == "media"


class TestMultipartUpload:
    def test_single_file(self, app, client, auth_headers) -> None:
        res = client.post(
            "/api/upload/file",
            data={"file": (io.BytesIO(PNG_BYTES), "my photo.png", "image/png")},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        media = res.get_json()
        assert media["url"].startswith("/uploads/images/")
        assert media["url"].endswith("_my_photo.png")
        assert media["size"] == len(PNG_BYTES)
        assert os.path.isfile(stored_path(app, media["url"]))

        served = client.get(media["url"])
        assert served.status_code == 200
        assert served.data == PNG_BYTES

    def test_multiple_files(self, client, auth_headers) -> None:
        res = client.post(
            "/api/upload/files",
            data={"files": [
                (io.BytesIO(b"hello"), "notes.txt", "text/plain"),
                (io.BytesIO(PNG_BYTES), "logo.png", "image/png"),
            ]},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        urls = [m["url"] for m in res.get_json()]
        assert urls[0].startswith("/uploads/documents/")
        assert urls[1].startswith("/uploads/images/")

    def test_rejected_batch_writes_nothing(self, app, client, auth_headers, db_session) -> None:
        res = client.post(
            "/api/upload/files",
            data={"files": [
                (io.BytesIO(b"hello"), "a.txt", "text/plain"),
                (io.BytesIO(b"MZ"), "b.exe", "application/x-msdownload"),
            ]},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert res.status_code == 400
        documents = os.path.join(app.config["UPLOAD_FOLDER"], "documents")
        assert not os.path.isdir(documents) or os.listdir(documents) == []
        db_session.expire_all()
        assert Media.query.count() == 0

    def test_file_count_limit(self, client, auth_headers) -> None:
        files = [(io.BytesIO(b"x"), f"note{n}.txt", "text/plain") for n in range(21)]
        res = client.post("/api/upload/files", data={"files": files}, headers=auth_headers,
                          content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["message"] == "Maximum 20 files allowed"

    def test_hidden_or_empty_filenames_rejected(self, client, auth_headers) -> None:
        for name in ("..", ".env"):
            res = client.post(
                "/api/upload/file",
                data={"file": (io.BytesIO(b"SECRET=1"), name, "text/plain")},
                headers=auth_headers,
                content_type="multipart/form-data",
            )
            assert res.status_code == 400
            assert res.get_json()["message"] == "Invalid filename"

    def test_disallowed_type(self, client, auth_headers) -> None:
        res = client.post(
            "/api/upload/file",
            data={"file": (io.BytesIO(b"MZ"), "tool.exe", "application/x-msdownload")},
            headers=auth_headers,
            content_type="multipart/form-data",
        )
        assert res.status_code == 400

    def test_requires_auth(self, client) -> None:
        res = client.post(
            "/api/upload/file",
            data={"file": (io.BytesIO(PNG_BYTES), "a.png", "image/png")},
            content_type="multipart/form-data",
        )
        assert res.status_code == 401


class TestMediaLibrary:
    def test_base64_upload_is_written_to_disk(self, app, client, auth_headers) -> None:
        res = client.post("/api/media", json={
            "filename": "banner.png", "originalName": "banner.png", "mimeType": "image/png",
            "size": 999, "url": data_url(PNG_BYTES), "alt": "Banner",
        }, headers=auth_headers)
        assert res.status_code == 201
        media = res.get_json()
        assert media["url"].startswith("/uploads/images/")
        assert media["size"] == len(PNG_BYTES)
        assert media["alt"] == "Banner"
        with open(stored_path(app, media["url"]), "rb") as fh:
            assert fh.read() == PNG_BYTES

    def test_invalid_base64(self, client, auth_headers) -> None:
        res = client.post("/api/media", json={
            "originalName": "x.png", "mimeType": "image/png", "url": "data:image/png;base64,@@@",
        }, headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["message"] == "Invalid base64 data"

        res = client.post("/api/media", json={
            "originalName": "x.png", "mimeType": "image/png", "url": "data:image/png;base64,",
        }, headers=auth_headers)
        assert res.status_code == 400

    def test_external_url_recorded_as_is(self, client, auth_headers) -> None:
        res = client.post("/api/media", json={
            "filename": "cdn.png", "originalName": "cdn.png", "mimeType": "image/png",
            "url": "https://cdn.example.com/cdn.png", "size": 10,
        }, headers=auth_headers)
        assert res.status_code == 201
        assert res.get_json()["url"] == "https://cdn.example.com/cdn.png"

    def test_missing_fields(self, client, auth_headers) -> None:
        res = client.post("/api/media", json={"originalName": "x.png"}, headers=auth_headers)
        assert res.status_code == 400
        res = client.post("/api/media", json={"mimeType": "image/png", "url": "/x.png"},
                          headers=auth_headers)
        assert res.status_code == 400

    def test_malformed_fields(self, client, auth_headers) -> None:
        base = {"originalName": "x.png", "mimeType": "image/png"}
        for extra in ({"url": 42}, {"url": "/x.png", "size": -5}, {"url": "/x.png", "size": "big"}):
            res = client.post("/api/media", json={**base, **extra}, headers=auth_headers)
            assert res.status_code == 400
            assert res.get_json()["message"] == "Invalid data"

    def test_delete_removes_file(self, app, client, auth_headers) -> None:
        media = client.post("/api/media", json={
            "originalName": "doc.pdf", "mimeType": "application/pdf",
            "url": data_url(b"%PDF-1.4", "application/pdf"),
        }, headers=auth_headers).get_json()
        path = stored_path(app, media["url"])
        assert media["url"].startswith("/uploads/documents/")
        assert os.path.isfile(path)

        res = client.delete(f"/api/media/{media['id']}", headers=auth_headers)
        assert res.get_json() == {"message": "Media deleted"}
        assert not os.path.exists(path)
        assert client.get(f"/api/media/{media['id']}", headers=auth_headers).status_code == 404

    def test_list(self, client, auth_headers) -> None:
        for name in ("a.png", "b.png"):
            client.post("/api/media", json={
                "originalName": name, "mimeType": "image/png", "url": data_url(PNG_BYTES),
            }, headers=auth_headers)
        items = client.get("/api/media", headers=auth_headers).get_json()
        assert [m["originalName"] for m in items] == ["b.png", "a.png"]


class TestMediaSync:
    def test_sync_records_untracked_files(self, app, client, auth_headers, db_session) -> None:
        client.post("/api/media", json={
            "originalName": "known.png", "mimeType": "image/png", "url": data_url(PNG_BYTES),
        }, headers=auth_headers)
        images = os.path.join(app.config["UPLOAD_FOLDER"], "images")
        documents = os.path.join(app.config["UPLOAD_FOLDER"], "documents")
        os.makedirs(documents, exist_ok=True)
        with open(os.path.join(images, "loose.jpg"), "wb") as fh:
            fh.write(b"jpeg")
        with open(os.path.join(documents, "report.pdf"), "wb") as fh:
            fh.write(b"%PDF")

        res = client.post("/api/media/sync", headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["synced"] == 2
        assert body["skipped"] == 1

        db_session.expire_all()
        synced = Media.query.filter_by(filename="loose.jpg").one()
        assert synced.mime_type == "image/jpeg"
        assert synced.url == "/uploads/images/loose.jpg"

        again = client.post("/api/media/sync", headers=auth_headers).get_json()
        assert again["synced"] == 0
        assert again["skipped"] == 3
