# app/services/photo_store.py
# 목적: photos 컬렉션 조회/쓰기 (라우터는 HTTP 만, 쿼리는 여기서)
# - 공개 갤러리 자격: isPublic=true AND status="ready"
# - 새로움 판정 키는 uploadedAt 하나뿐 (수정 시에도 갱신하지 않음)
# - PyMongoError 는 StoreError 로 바꿔서 올림 → 500, 부분 결과 없음

from __future__ import annotations
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.errors import Conflict, StoreError
from app.services.utils import format_bytes, to_iso, utc_now

log = logging.getLogger(__name__)

ELIGIBLE = {"isPublic": True, "status": "ready"}
PREVIEW_FIELDS = {"filename": 1, "originalName": 1, "uploadedAt": 1, "uploader.name": 1, "eventMoment": 1}

def eligible_since(since: datetime) -> Dict[str, Any]:
    return {"uploadedAt": {"$gt": since}, **ELIGIBLE}

def _store_error(action: str, e: Exception) -> StoreError:
    log.error("photo store %s failed: %s", action, e, exc_info=True)
    return StoreError("Error accediendo a la base de datos de fotos", details=str(e))

# --- 폴링 --------------------------------------------------------------------
async def check_new(photos: AsyncIOMotorCollection, since: datetime, preview_limit: int = 5) -> Tuple[int, List[Dict]]:
    """since 이후 자격 있는 사진 수(정확) + 최신순 미리보기(최대 preview_limit)."""
    query = eligible_since(since)
    try:
        count = await photos.count_documents(query)
        if count == 0:
            return 0, []
        cursor = photos.find(query, PREVIEW_FIELDS).sort("uploadedAt", -1).limit(preview_limit)
        recent = await cursor.to_list(length=preview_limit)
    except PyMongoError as e:
        raise _store_error("check_new", e) from e
    return count, recent

# --- 목록 --------------------------------------------------------------------
def gallery_query(
    event_moment: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    since: Optional[datetime] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {**ELIGIBLE, "moderationStatus": "approved"}
    if event_moment:
        query["eventMoment"] = event_moment
    if tag:
        query["tags"] = tag
    if search and search.strip():
        rx = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"comment": rx}, {"tags": rx}, {"originalName": rx}]
    if since is not None:
        query["uploadedAt"] = {"$gt": since}
    return query

async def list_photos(
    photos: AsyncIOMotorCollection, query: Dict[str, Any], page: int = 1, limit: int = 20
) -> Tuple[List[Dict], Dict[str, int]]:
    skip = (page - 1) * limit
    try:
        total = await photos.count_documents(query)
        cursor = photos.find(query).sort("uploadedAt", -1).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
    except PyMongoError as e:
        raise _store_error("list_photos", e) from e
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
    return docs, pagination

# --- 단건 CRUD ---------------------------------------------------------------
async def create_photo(photos: AsyncIOMotorCollection, doc: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = await photos.insert_one(doc)
    except DuplicateKeyError as e:
        raise Conflict(f"Ya existe una foto con filename '{doc.get('filename')}'") from e
    except PyMongoError as e:
        raise _store_error("create_photo", e) from e
    doc["_id"] = res.inserted_id
    log.info("photo saved: %s (%s)", res.inserted_id, doc.get("filename"))
    return doc

async def view_photo(photos: AsyncIOMotorCollection, oid: ObjectId) -> Optional[Dict[str, Any]]:
    # 조회 + viewCount 증가를 한 번에
    try:
        return await photos.find_one_and_update(
            {"_id": oid},
            {"$inc": {"viewCount": 1}, "$set": {"lastViewedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise _store_error("view_photo", e) from e

async def update_photo(photos: AsyncIOMotorCollection, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        return await photos.find_one_and_update(
            {"_id": oid},
            {"$set": {**changes, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise _store_error("update_photo", e) from e

async def delete_photo(photos: AsyncIOMotorCollection, oid: ObjectId) -> Optional[Dict[str, Any]]:
    # 메타데이터만 삭제. 실제 파일 정리는 별도 (반환값의 저장소 참조 사용)
    try:
        return await photos.find_one_and_delete({"_id": oid})
    except PyMongoError as e:
        raise _store_error("delete_photo", e) from e

# --- 통계 --------------------------------------------------------------------
async def _group_counts(photos: AsyncIOMotorCollection, field: str, with_size: bool = False) -> List[Dict]:
    group: Dict[str, Any] = {"_id": f"${field}", "count": {"$sum": 1}}
    if with_size:
        group["totalSize"] = {"$sum": "$fileSize"}
    return await photos.aggregate([{"$group": group}]).to_list(length=None)

async def photo_stats(photos: AsyncIOMotorCollection, days: int = 7) -> Dict[str, Any]:
    now = utc_now()
    try:
        total = await photos.count_documents({})
        public = await photos.count_documents(ELIGIBLE)
        totals = await photos.aggregate([
            {"$group": {"_id": None, "totalViews": {"$sum": "$viewCount"}, "avgSize": {"$avg": "$fileSize"}}}
        ]).to_list(length=1)
        by_source = await _group_counts(photos, "uploadSource", with_size=True)
        by_moment = await _group_counts(photos, "eventMoment")
        by_status = await _group_counts(photos, "status")

        # 최근 N일 일별 업로드 (UTC 기준)
        recent = await photos.find(
            {"uploadedAt": {"$gte": now - timedelta(days=days)}}, {"uploadedAt": 1}
        ).to_list(length=None)
        top = await photos.find(
            ELIGIBLE, {"filename": 1, "originalName": 1, "viewCount": 1, "eventMoment": 1, "uploadedAt": 1}
        ).sort("viewCount", -1).limit(5).to_list(length=5)
    except PyMongoError as e:
        raise _store_error("photo_stats", e) from e

    agg = totals[0] if totals else {}
    avg_size = agg.get("avgSize") or 0

    per_day: Dict[str, int] = {}
    for d in recent:
        key = d["uploadedAt"].strftime("%Y-%m-%d")
        per_day[key] = per_day.get(key, 0) + 1

    return {
        "general": {
            "totalPhotos": total,
            "publicPhotos": public,
            "totalViews": agg.get("totalViews") or 0,
            "avgFileSize": round(avg_size),
            "avgFileSizeFormatted": format_bytes(avg_size),
        },
        "distribution": {
            "bySource": {
                str(g["_id"]): {
                    "count": g["count"],
                    "totalSize": g.get("totalSize", 0),
                    "totalSizeFormatted": format_bytes(g.get("totalSize", 0)),
                }
                for g in by_source
            },
            "byEventMoment": {str(g["_id"]): g["count"] for g in by_moment},
            "byStatus": {str(g["_id"]): g["count"] for g in by_status},
        },
        "trends": {
            "recentUploads": [{"date": k, "uploads": per_day[k]} for k in sorted(per_day)],
            "topViewed": [
                {
                    "id": str(p["_id"]),
                    "filename": p.get("filename"),
                    "originalName": p.get("originalName"),
                    "viewCount": p.get("viewCount", 0),
                    "eventMoment": p.get("eventMoment"),
                    "uploadedAt": to_iso(p.get("uploadedAt")),
                }
                for p in top
            ],
        },
        "metadata": {"generatedAt": to_iso(now), "timezone": "UTC"},
    }
