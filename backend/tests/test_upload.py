"""
POST /photos/upload — multipart 로컬 업로드

- 검사 통과 → 디스크 저장 + photos 문서 (바로 check-new 에 잡힘)
- 하나라도 불량 → 400, 아무것도 저장 안 됨
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from app.core.config import settings
from app.core.errors import Conflict
from app.services.uploads import read_dimensions, sanitize_filename, unique_filename


def _files_on_disk(root):
    return [p for p in root.rglob("*") if p.is_file()]


class TestUploadPhotos:

    @pytest.mark.asyncio
    async def test_single_upload_is_stored_and_polled(self, test_client, photos, upload_dir, image_bytes):
        r = await test_client.post(
            "/photos/upload",
            files=[("file", ("Mi Foto!.png", image_bytes(), "image/png"))],
            data={"uploaderName": "  Ana  ", "eventMoment": "fiesta", "comment": "¡Qué noche!"},
        )

        assert r.status_code == 201
        body = r.json()
        assert body["message"] == "1 foto subida exitosamente"
        photo, = body["photos"]
        assert photo["uploadSource"] == "local"
        assert photo["originalName"] == "Mi Foto!.png"
        assert photo["filename"].endswith("_mi_foto.png")
        assert photo["dimensions"] == {"width": 4, "height": 3}
        assert photo["uploader"]["name"] == "Ana"
        assert photo["eventMoment"] == "fiesta"
        assert photo["displayUrl"] == photo["localPath"]
        assert photo["localPath"].startswith("/uploads/fotos/")

        on_disk = upload_dir / photo["localPath"][len("/uploads/"):]
        assert on_disk.read_bytes() == image_bytes()
        assert await photos.count_documents({}) == 1

        r = await test_client.get("/photos/check-new", params={"since": "2000-01-01T00:00:00Z"})
        assert r.json()["count"] == 1
        assert r.json()["recentPhotos"][0]["uploaderName"] == "Ana"

    @pytest.mark.asyncio
    async def test_multiple_files(self, test_client, upload_dir, image_bytes):
        r = await test_client.post("/photos/upload", files=[
            ("file", ("a.png", image_bytes(), "image/png")),
            ("file", ("b.jpg", image_bytes("JPEG", (8, 6)), "image/jpeg")),
        ])

        assert r.status_code == 201
        assert r.json()["message"] == "2 fotos subidas exitosamente"
        assert {p["dimensions"]["width"] for p in r.json()["photos"]} == {4, 8}
        assert len(_files_on_disk(upload_dir)) == 2

    @pytest.mark.asyncio
    async def test_extension_follows_content_type_when_missing(self, test_client, upload_dir, image_bytes):
        r = await test_client.post("/photos/upload", files=[("file", ("foto", image_bytes(), "image/png"))])

        assert r.status_code == 201
        assert r.json()["photos"][0]["filename"].endswith(".png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name, content, ctype, detail", [
        ("notas.txt", b"hola", "text/plain", "Tipo de archivo no permitido"),
        ("vacia.png", b"", "image/png", "Archivo vacío"),
        ("falsa.png", b"not really a png", "image/png", "no es una imagen"),
    ])
    async def test_rejected_file_saves_nothing(
        self, test_client, photos, upload_dir, image_bytes, name, content, ctype, detail
    ):
        r = await test_client.post("/photos/upload", files=[
            ("file", ("ok.png", image_bytes(), "image/png")),
            ("file", (name, content, ctype)),
        ])

        assert r.status_code == 400
        assert r.json()["error"] == f"Error procesando {name}"
        assert detail in r.json()["details"]
        assert await photos.count_documents({}) == 0
        assert _files_on_disk(upload_dir) == []

    @pytest.mark.asyncio
    async def test_size_and_count_limits(self, test_client, upload_dir, image_bytes, monkeypatch):
        monkeypatch.setattr(settings, "UPLOAD_MAX_FILES", 1)
        r = await test_client.post("/photos/upload", files=[
            ("file", ("a.png", image_bytes(), "image/png")),
            ("file", ("b.png", image_bytes(), "image/png")),
        ])
        assert r.status_code == 400
        assert r.json()["error"] == "Máximo 1 archivos permitidos"

        monkeypatch.setattr(settings, "UPLOAD_MAX_BYTES", 10)
        r = await test_client.post("/photos/upload", files=[("file", ("a.png", image_bytes(), "image/png"))])
        assert r.status_code == 400
        assert r.json()["details"] == "Archivo demasiado grande"

    @pytest.mark.asyncio
    async def test_missing_file_field_is_400(self, test_client, upload_dir):
        r = await test_client.post("/photos/upload", data={"uploaderName": "Ana"})
        assert r.status_code == 400
        assert r.json()["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_event_moment_is_400(self, test_client, upload_dir, image_bytes):
        r = await test_client.post(
            "/photos/upload",
            files=[("file", ("a.png", image_bytes(), "image/png"))],
            data={"eventMoment": "brindis"},
        )
        assert r.status_code == 400
        assert _files_on_disk(upload_dir) == []

    @pytest.mark.asyncio
    async def test_failed_insert_removes_written_file(self, test_client, upload_dir, image_bytes):
        failing = AsyncMock(side_effect=Conflict("Ya existe una foto"))
        with patch("app.api.routes_photo.photo_store.create_photo", new=failing):
            r = await test_client.post("/photos/upload", files=[("file", ("a.png", image_bytes(), "image/png"))])

        assert r.status_code == 409
        assert _files_on_disk(upload_dir) == []


class TestUploadHelpers:

    @pytest.mark.parametrize("raw, expected", [
        ("Mi Foto!", "mi_foto"),
        ("__boda  2024__", "boda_2024"),
        ("ñandú", "and"),
        ("", "foto"),
    ])
    def test_sanitize_filename(self, raw, expected):
        assert sanitize_filename(raw) == expected

    def test_unique_filename(self):
        now = datetime(2024, 6, 15, 10, 0)
        a = unique_filename("IMG 01.JPG", "image/jpeg", now)
        b = unique_filename("IMG 01.JPG", "image/jpeg", now)

        assert a != b
        assert a.endswith("_img_01.jpg")
        assert unique_filename("x.heic", "image/webp", now).endswith("_x.webp")

    def test_read_dimensions(self, image_bytes):
        assert read_dimensions(image_bytes("PNG", (10, 7))) == (10, 7)
        with pytest.raises(ValueError):
            read_dimensions(b"\x00\x01\x02")
