# app/api/routes_guest.py
# 하객 관리 — 목록/등록/조회/수정/삭제 + 통계 + 초대장 참석 확인
# 업로드 사진의 uploader.name 과 같은 이름 체계 (관리 화면에서 사진 ↔ 하객 대조용)

from __future__ import annotations
from typing import Literal, Optional
import logging

from fastapi import APIRouter, Depends, Query, Response

from bson.objectid import ObjectId

from app.core.config import settings
from app.core.errors import BadRequest, NotFound
from app.db.init import get_db, guests_collection
from app.db.models.guest import ConfirmIn, GuestIn, GuestUpdate
from app.db.models.schemas import guest_out
from app.services import guest_store
from app.services.utils import to_iso, utc_now

log = logging.getLogger(__name__)

router = APIRouter(prefix="/guests", tags=["guests"])

StatusFilter = Literal["all", "pending", "invited", "confirmed", "declined"]
RelationFilter = Literal["all", "familia", "amigos", "escuela", "trabajo", "otros"]

def _parse_oid(guest_id: str) -> ObjectId:
    if not ObjectId.is_valid(guest_id):
        raise BadRequest("ID de invitado inválido")
    return ObjectId(guest_id)

@router.get("/stats")
async def guests_stats(
    search: Optional[str] = None,
    status: Optional[StatusFilter] = None,
    relation: Optional[RelationFilter] = None,
    db=Depends(get_db),
):
    """목록과 같은 필터를 적용한 하객 통계"""
    query = guest_store.guest_query(search, status, relation)
    stats = await guest_store.guest_stats(guests_collection(db), query)
    stats["appliedFilters"] = {"search": search, "status": status, "relation": relation}
    return {"success": True, "data": stats}

@router.post("/confirm")
async def confirm_attendance(payload: ConfirmIn, response: Response, db=Depends(get_db)):
    """
    초대장 페이지의 참석 확인.
    이름(+전화) 으로 기존 하객을 찾아 갱신하고, 못 찾으면 새로 만든다 (생성 시 201).
    """
    action, doc, info = await guest_store.confirm_attendance(
        guests_collection(db), payload, threshold=settings.CONFIRM_SIMILARITY_THRESHOLD
    )
    if action == "updated":
        message = f"Confirmación actualizada para invitado existente: {doc['name']}"
    elif info:
        message = f"Nuevo invitado creado (búsqueda ambigua con {info['matchesCount']} coincidencias parciales)"
    else:
        message = f"Nuevo invitado creado: {doc['name']}"

    if action == "created":
        response.status_code = 201
    return {
        "success": True,
        "action": action,
        "guest": guest_out(doc),
        "matchInfo": info,
        "message": message,
        "timestamp": to_iso(utc_now()),
    }

@router.get("/confirm")
async def confirmation_stats(db=Depends(get_db)):
    """자동 참석 확인 현황 (모니터링용)"""
    data = await guest_store.confirmation_stats(
        guests_collection(db), threshold=settings.CONFIRM_SIMILARITY_THRESHOLD
    )
    return {"success": True, "data": data}

@router.get("")
async def list_guests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[StatusFilter] = None,
    relation: Optional[RelationFilter] = None,
    db=Depends(get_db),
):
    """하객 목록 (최근 등록순, 이름 검색/상태/관계 필터)"""
    query = guest_store.guest_query(search, status, relation)
    docs, pagination = await guest_store.list_guests(guests_collection(db), query, page, limit)
    return {
        "success": True,
        "data": {"guests": [guest_out(d) for d in docs], "pagination": pagination},
    }

@router.post("", status_code=201)
async def create_guest(payload: GuestIn, db=Depends(get_db)):
    doc = await guest_store.create_guest(guests_collection(db), payload.to_doc())
    return {"success": True, "data": guest_out(doc), "message": "Invitado creado exitosamente"}

@router.get("/{guest_id}")
async def get_guest(guest_id: str, db=Depends(get_db)):
    oid = _parse_oid(guest_id)
    doc = await guest_store.get_guest(guests_collection(db), oid)
    if not doc:
        raise NotFound("Invitado no encontrado")
    return {"success": True, "data": guest_out(doc)}

@router.put("/{guest_id}")
async def update_guest(guest_id: str, payload: GuestUpdate, db=Depends(get_db)):
    oid = _parse_oid(guest_id)
    changes = payload.to_set()
    if not changes:
        raise BadRequest("No hay campos válidos para actualizar")
    doc = await guest_store.update_guest(guests_collection(db), oid, changes)
    if not doc:
        raise NotFound("Invitado no encontrado")
    return {"success": True, "data": guest_out(doc), "message": "Invitado actualizado exitosamente"}

@router.delete("/{guest_id}")
async def delete_guest(guest_id: str, db=Depends(get_db)):
    oid = _parse_oid(guest_id)
    doc = await guest_store.delete_guest(guests_collection(db), oid)
    if not doc:
        raise NotFound("Invitado no encontrado")
    log.info("guest deleted: %s (%s)", oid, doc.get("name"))
    return {"success": True, "data": guest_out(doc), "message": "Invitado eliminado exitosamente"}
