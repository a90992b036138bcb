"""
공용 pytest 픽스처

- mongo_db: mongomock-motor 인메모리 DB (실제 Mongo 불필요), 인덱스까지 생성
- test_client: httpx AsyncClient + ASGITransport, get_db 를 mongo_db 로 교체
- make_photo / seed_photos: uploadedAt 을 직접 지정해 사진 문서 삽입
- upload_dir: 로컬 업로드 경로를 tmp_path 로, image_bytes: Pillow 로 만든 작은 이미지
"""

import io
import os
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient
from PIL import Image

# 앱 import 전에 설정 고정
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DB_INIT_RETRIES"] = "1"

from app.core.config import settings  # noqa: E402
from app.db.indexes import ensure_guest_indexes, ensure_photo_indexes  # noqa: E402
from app.db.init import get_db, guests_collection, photos_collection  # noqa: E402


BASE_TIME = datetime(2024, 6, 15, 10, 0, 0)


def make_photo(uploaded_at, n=0, **overrides):
    """저장소에 들어가는 형태 그대로의 사진 문서"""
    doc = {
        "filename": f"foto-{n}-{uploaded_at:%H%M%S%f}.jpg",
        "originalName": f"IMG_{n:04d}.jpg",
        "cloudinaryId": f"boda/foto-{n}",
        "cloudinaryUrl": f"https://res.cloudinary.com/demo/image/upload/v1/boda/foto-{n}.jpg",
        "uploadSource": "cloudinary",
        "fileSize": 1024 * (n + 1),
        "mimeType": "image/jpeg",
        "dimensions": {"width": 800, "height": 600},
        "uploader": {"name": f"Invitado {n}", "ip": "10.0.0.1", "userAgent": "pytest"},
        "eventMoment": "ceremonia",
        "uploadedAt": uploaded_at,
        "isPublic": True,
        "status": "ready",
        "moderationStatus": "approved",
        "tags": [],
        "viewCount": 0,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest_asyncio.fixture
async def mongo_db():
    client = AsyncMongoMockClient()
    db = client["invitacion_test"]
    await ensure_photo_indexes(db)
    await ensure_guest_indexes(db)
    return db


@pytest.fixture
def photos(mongo_db):
    return photos_collection(mongo_db)


@pytest_asyncio.fixture
async def seed_photos(photos):
    """seed_photos([dt, dt, ...], **overrides) → 삽입된 문서 리스트"""
    counter = {"n": 0}

    async def _seed(times, **overrides):
        docs = []
        for t in times:
            doc = make_photo(t, counter["n"], **overrides)
            counter["n"] += 1
            await photos.insert_one(doc)
            docs.append(doc)
        return docs

    return _seed


@pytest.fixture
def guests(mongo_db):
    return guests_collection(mongo_db)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def image_bytes():
    """image_bytes("PNG", (w, h)) → 인코딩된 이미지 바이트"""
    def _make(fmt="PNG", size=(4, 3)):
        buf = io.BytesIO()
        Image.new("RGB", size, (200, 30, 90)).save(buf, fmt)
        return buf.getvalue()
    return _make


@pytest.fixture
def minutes(base_time):
    return lambda m: base_time + timedelta(minutes=m)


@pytest_asyncio.fixture
async def test_client(mongo_db):
    from app.main import app

    app.dependency_overrides[get_db] = lambda: mongo_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
