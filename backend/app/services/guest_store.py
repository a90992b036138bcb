# app/services/guest_store.py
# 목적: guests 컬렉션 조회/쓰기 + 참석 확인(이름 매칭)
# - 이름 중복은 대소문자 무시 정확 일치로 판단
# - 통계는 하객 수가 많지 않아서 문서를 받아 파이썬에서 집계

from __future__ import annotations
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.errors import BadRequest, StoreError
from app.db.models.guest import ConfirmIn
from app.services import name_match
from app.services.utils import to_iso, utc_now

log = logging.getLogger(__name__)

DEFAULT_CONFIRM_COMMENT = "Confirmación automática vía web"
MATCH_FIELDS = {"name": 1, "phone": 1, "relation": 1}

def _store_error(action: str, e: Exception) -> StoreError:
    log.error("guest store %s failed: %s", action, e, exc_info=True)
    return StoreError("Error accediendo a la base de datos de invitados", details=str(e))

def _name_regex(name: str) -> Dict[str, Any]:
    return {"$regex": f"^{re.escape(name.strip())}$", "$options": "i"}

# --- 목록 --------------------------------------------------------------------
def guest_query(
    search: Optional[str] = None,
    status: Optional[str] = None,
    relation: Optional[str] = None,
) -> Dict[str, Any]:
    # "all" 은 필터 없음
    query: Dict[str, Any] = {}
    if search and search.strip():
        query["name"] = {"$regex": re.escape(search.strip()), "$options": "i"}
    if status and status != "all":
        query["status"] = status
    if relation and relation != "all":
        query["relation"] = relation
    return query

async def list_guests(
    guests: AsyncIOMotorCollection, query: Dict[str, Any], page: int = 1, limit: int = 10
) -> Tuple[List[Dict], Dict[str, Any]]:
    try:
        total = await guests.count_documents(query)
        cursor = guests.find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit)
        docs = await cursor.to_list(length=limit)
    except PyMongoError as e:
        raise _store_error("list_guests", e) from e
    pages = math.ceil(total / limit) if limit else 0
    return docs, {
        "current": page,
        "total": pages,
        "hasNext": page < pages,
        "hasPrev": page > 1,
        "totalItems": total,
    }

# --- 단건 CRUD ---------------------------------------------------------------
async def _name_taken(guests: AsyncIOMotorCollection, name: str, exclude: Optional[ObjectId] = None) -> bool:
    query: Dict[str, Any] = {"name": _name_regex(name)}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    return await guests.find_one(query, {"_id": 1}) is not None

async def create_guest(guests: AsyncIOMotorCollection, doc: Dict[str, Any]) -> Dict[str, Any]:
    try:
        if await _name_taken(guests, doc["name"]):
            raise BadRequest("Ya existe un invitado con ese nombre")
        res = await guests.insert_one(doc)
    except PyMongoError as e:
        raise _store_error("create_guest", e) from e
    doc["_id"] = res.inserted_id
    log.info("guest created: %s (%s)", res.inserted_id, doc["name"])
    return doc

async def get_guest(guests: AsyncIOMotorCollection, oid: ObjectId) -> Optional[Dict[str, Any]]:
    try:
        return await guests.find_one({"_id": oid})
    except PyMongoError as e:
        raise _store_error("get_guest", e) from e

async def update_guest(
    guests: AsyncIOMotorCollection, oid: ObjectId, changes: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    try:
        current = await guests.find_one({"_id": oid}, {"name": 1})
        if current is None:
            return None
        new_name = changes.get("name")
        if new_name and new_name != current.get("name") and await _name_taken(guests, new_name, exclude=oid):
            raise BadRequest("Ya existe otro invitado con ese nombre")
        return await guests.find_one_and_update(
            {"_id": oid},
            {"$set": {**changes, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise _store_error("update_guest", e) from e

async def delete_guest(guests: AsyncIOMotorCollection, oid: ObjectId) -> Optional[Dict[str, Any]]:
    try:
        return await guests.find_one_and_delete({"_id": oid})
    except PyMongoError as e:
        raise _store_error("delete_guest", e) from e

# --- 참석 확인 ---------------------------------------------------------------
def _attendance(data: ConfirmIn, now: datetime) -> Dict[str, Any]:
    return {
        "confirmed": data.willAttend,
        "confirmedAt": now,
        "numberOfGuestsConfirmed": data.numberOfGuests,
        "comments": data.comments or DEFAULT_CONFIRM_COMMENT,
    }

async def confirm_attendance(
    guests: AsyncIOMotorCollection, data: ConfirmIn, threshold: float = 80.0
) -> Tuple[str, Dict[str, Any], Optional[Dict[str, Any]]]:
    """
    참석 확인 폼 처리.
    - 충분히 비슷한 하객이 있으면 그 문서의 attendance/status 갱신 → ("updated", doc, matchInfo)
    - 없으면 relation="otros" 로 새 하객 생성 → ("created", doc, matchInfo|None)
    """
    now = utc_now()
    status = "confirmed" if data.willAttend else "declined"
    try:
        everyone = await guests.find({}, MATCH_FIELDS).to_list(length=None)
        match = name_match.best_match(data.name, everyone, phone=data.phone, threshold=threshold)

        if match and match["similarity"] >= threshold:
            similar = name_match.similar_matches(data.name, everyone, threshold, limit=3)
            found = match["guest"]
            changes: Dict[str, Any] = {
                "attendance": _attendance(data, now),
                "status": status,
                "updatedAt": now,
            }
            if data.phone and not found.get("phone"):
                changes["phone"] = data.phone
            doc = await guests.find_one_and_update(
                {"_id": found["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
            if doc is None:
                # 매칭과 갱신 사이에 삭제됨
                raise StoreError("No se pudo actualizar el invitado", details=str(found["_id"]))
            info = {
                "similarity": match["similarity"],
                "wasExactMatch": match["isExactMatch"],
                "matchType": match["matchType"],
                "searchName": data.name,
                "foundName": found["name"],
                "multipleMatches": len(similar) > 1,
                "matchesCount": len(similar),
                "matchMethod": match.get("matchMethod", "name"),
                "phoneMatch": match.get("phoneMatch", False),
                "hasConflict": match.get("hasConflict", False),
                "searchPhone": data.phone,
            }
            log.info("confirm: updated %s (%s, %.1f%%)", found["name"], info["matchMethod"], match["similarity"])
            return "updated", doc, info

        similar = name_match.similar_matches(data.name, everyone, threshold, limit=5)
        notes = "Registro creado automáticamente por confirmación de asistencia"
        if similar:
            notes += f'. Búsqueda ambigua: "{data.name}" tuvo {len(similar)} coincidencias similares'
        else:
            notes += f'. Búsqueda: "{data.name}" - no se encontraron coincidencias suficientes'
        doc = {
            "name": data.name,
            "relation": "otros",
            "status": status,
            "attendance": _attendance(data, now),
            "autoCreated": True,
            "notes": notes,
            "searchedName": data.name,
            "createdAt": now,
            "updatedAt": now,
        }
        if data.phone:
            doc["phone"] = data.phone
        res = await guests.insert_one(doc)
    except PyMongoError as e:
        raise _store_error("confirm_attendance", e) from e

    doc["_id"] = res.inserted_id
    info = None
    if similar:
        info = {
            "similarity": 0,
            "wasExactMatch": False,
            "matchType": "partial",
            "searchName": data.name,
            "foundName": "Nuevo registro",
            "multipleMatches": True,
            "matchesCount": len(similar),
        }
    log.info("confirm: created %s (ambiguous=%s)", data.name, bool(similar))
    return "created", doc, info

# --- 통계 --------------------------------------------------------------------
def _is_confirmed(g: Dict[str, Any]) -> bool:
    return (g.get("attendance") or {}).get("confirmed") is True

def _party_size(g: Dict[str, Any]) -> int:
    att = g.get("attendance") or {}
    if att.get("confirmed") is True:
        return att.get("numberOfGuestsConfirmed") or 0
    return (g.get("personalInvitation") or {}).get("numberOfGuests") or 0

def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0

async def guest_stats(
    guests: AsyncIOMotorCollection, query: Dict[str, Any], days: int = 7, recent_limit: int = 10
) -> Dict[str, Any]:
    now = utc_now()
    try:
        docs = await guests.find(query).to_list(length=None)
    except PyMongoError as e:
        raise _store_error("guest_stats", e) from e

    total = len(docs)
    confirmed = sum(1 for g in docs if _is_confirmed(g))

    by_relation: Dict[str, Dict[str, int]] = {}
    for g in docs:
        rel = by_relation.setdefault(str(g.get("relation")), {"total": 0, "confirmed": 0})
        rel["total"] += 1
        rel["confirmed"] += _is_confirmed(g)

    # 최근 N일 일별 확인 (UTC 기준)
    cutoff = now - timedelta(days=days)
    per_day: Dict[str, Dict[str, int]] = {}
    for g in docs:
        at = (g.get("attendance") or {}).get("confirmedAt")
        if _is_confirmed(g) and isinstance(at, datetime) and at >= cutoff:
            day = per_day.setdefault(at.strftime("%Y-%m-%d"), {"confirmations": 0, "totalGuests": 0})
            day["confirmations"] += 1
            day["totalGuests"] += g["attendance"].get("numberOfGuestsConfirmed") or 0

    recent = sorted(docs, key=lambda g: g.get("createdAt") or datetime.min, reverse=True)[:recent_limit]

    return {
        "overview": {
            "totalGuests": total,
            "totalConfirmed": confirmed,
            "totalInvited": sum(1 for g in docs if g.get("status") == "invited"),
            "totalPending": total - confirmed,
            "totalGuestCount": sum(_party_size(g) for g in docs),
            "confirmationRate": _rate(confirmed, total),
        },
        "byRelation": [
            {"relation": k, "total": v["total"], "confirmed": v["confirmed"],
             "confirmationRate": _rate(v["confirmed"], v["total"])}
            for k, v in sorted(by_relation.items(), key=lambda kv: kv[1]["total"], reverse=True)
        ],
        "dailyConfirmations": [{"date": k, **per_day[k]} for k in sorted(per_day)],
        "recentGuests": [
            {
                "id": str(g["_id"]),
                "name": g.get("name"),
                "relation": g.get("relation"),
                "status": g.get("status"),
                "createdAt": to_iso(g.get("createdAt")),
                "confirmed": _is_confirmed(g),
                "confirmedAt": to_iso((g.get("attendance") or {}).get("confirmedAt")),
            }
            for g in recent
        ],
        "generatedAt": to_iso(now),
    }

async def confirmation_stats(guests: AsyncIOMotorCollection, threshold: float = 80.0) -> Dict[str, Any]:
    # 자동 확인 시스템 모니터링용
    try:
        docs = await guests.find({}, {"autoCreated": 1, "attendance": 1, "status": 1}).to_list(length=None)
    except PyMongoError as e:
        raise _store_error("confirmation_stats", e) from e

    total = len(docs)
    auto = sum(1 for g in docs if g.get("autoCreated") is True)
    confirmed = sum(1 for g in docs if _is_confirmed(g))
    declined = sum(1 for g in docs if (g.get("attendance") or {}).get("confirmed") is False)
    attendees = sum((g["attendance"].get("numberOfGuestsConfirmed") or 0) for g in docs if _is_confirmed(g))

    def pct(n: int) -> str:
        return f"{n / total * 100:.1f}%" if total else "0%"

    return {
        "totalGuests": total,
        "autoCreatedGuests": auto,
        "confirmedGuests": confirmed,
        "declinedGuests": declined,
        "pendingGuests": sum(1 for g in docs if g.get("status") == "pending"),
        "totalConfirmedAttendees": attendees,
        "autoCreationRate": pct(auto),
        "confirmationRate": pct(confirmed),
        "matching": {
            "similarityThreshold": threshold,
            "minNameLength": name_match.MIN_NAME_LENGTH,
        },
        "generatedAt": to_iso(utc_now()),
    }
