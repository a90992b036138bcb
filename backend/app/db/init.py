# app/db/init.py
# Mongo 연결 유틸 — motor (on_event용)

from __future__ import annotations
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from app.core.config import settings
from app.core.errors import StoreError

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def init_db() -> AsyncIOMotorDatabase:
    # 앱 시작 시 1회 호출해서 전역 커넥션 구성 (커넥션 풀은 프로세스 수명 동안 재사용)
    global _client, _db
    if _db is not None:
        return _db

    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS,
        socketTimeoutMS=settings.MONGO_TIMEOUT_MS,
    )
    db = client[settings.MONGO_DB]

    # 연결 확인 (준비 안 됐으면 예외)
    try:
        await db.command("ping")
    except Exception:
        client.close()
        raise

    _client, _db = client, db
    return _db

def get_db() -> AsyncIOMotorDatabase:
    # 라우터에서 쓰는 핸들. 미초기화면 500 (StoreError)
    if _db is None:
        raise StoreError("Base de datos no disponible", details="MongoDB is not initialized yet.")
    return _db

def photos_collection(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    return db[settings.PHOTOS_COLLECTION]

def guests_collection(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    return db[settings.GUESTS_COLLECTION]

async def close_db() -> None:
    # 앱 종료 시 커넥션 정리
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
