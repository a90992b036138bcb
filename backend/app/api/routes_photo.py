# app/api/routes_photo.py
# 하객 사진 갤러리 — 메타데이터 등록/조회/수정/삭제 + 새 사진 폴링 + 통계
# 이미지 바이트는 Cloudinary/로컬 디스크에 있다. /upload 만 직접 로컬에 저장한다.

from __future__ import annotations
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from pydantic import ValidationError

from bson.objectid import ObjectId

from app.core.config import settings
from app.core.deps import get_uploader_meta
from app.core.errors import BadRequest, NotFound, StoreError, first_error_message
from app.db.init import get_db, photos_collection
from app.db.models.photo import EventMoment, PhotoIn, PhotoUpdate
from app.db.models.schemas import (
    CheckNewOut,
    PhotoListOut,
    PhotoPreviewOut,
    photo_out,
)
from app.services import photo_store, uploads
from app.services.utils import parse_instant, to_iso, utc_now

log = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["photos"])

def _parse_oid(photo_id: str) -> ObjectId:
    if not ObjectId.is_valid(photo_id):
        raise BadRequest("ID de foto inválido")
    return ObjectId(photo_id)

def _parse_since(since: Optional[str]) -> datetime:
    # 없거나 파싱 불가면 저장소 조회 전에 400
    if since is None or not since.strip():
        raise BadRequest('Parámetro "since" es requerido')
    try:
        return parse_instant(since)
    except ValueError:
        raise BadRequest('Fecha "since" inválida')

def require_since(since: Optional[str] = None) -> datetime:
    # DB 의존성보다 먼저 평가됨
    return _parse_since(since)

@router.get("/check-new", response_model=CheckNewOut)
async def check_new_photos(since_dt: datetime = Depends(require_since), db=Depends(get_db)):
    """
    since 이후 새로 올라온 공개(ready) 사진이 있는지 확인
    - count 는 정확한 개수, recentPhotos 는 최신순 최대 5장 미리보기
    """
    count, recent = await photo_store.check_new(
        photos_collection(db), since_dt, preview_limit=settings.PREVIEW_LIMIT
    )
    log.info("check-new since=%s count=%d", to_iso(since_dt), count)

    return CheckNewOut(
        hasNew=count > 0,
        count=count,
        since=to_iso(since_dt),
        recentPhotos=[PhotoPreviewOut.from_doc(d) for d in recent],
    )

@router.get("/stats")
async def photos_stats(db=Depends(get_db)):
    """사진 통계 (전체/공개 수, 조회수, 분포, 최근 업로드 추이)"""
    stats = await photo_store.photo_stats(photos_collection(db))
    return {"success": True, "stats": stats}

@router.get("", response_model=PhotoListOut)
async def list_photos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    eventMoment: Optional[EventMoment] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    since: Optional[str] = None,
    db=Depends(get_db),
):
    """공개 갤러리 목록 (최신순, 페이지네이션). since 주면 그 이후 것만"""
    since_dt = _parse_since(since) if since is not None else None
    query = photo_store.gallery_query(eventMoment, tag, search, since_dt)
    docs, pagination = await photo_store.list_photos(photos_collection(db), query, page, limit)
    return {
        "success": True,
        "photos": [photo_out(d) for d in docs],
        "pagination": pagination,
    }

@router.post("", status_code=201)
async def create_photo(payload: PhotoIn, request: Request, db=Depends(get_db)):
    """업로드 완료된 이미지의 메타데이터 저장 (uploadedAt 은 서버가 지정)"""
    doc = payload.to_doc(get_uploader_meta(request))
    saved = await photo_store.create_photo(photos_collection(db), doc)
    return {"success": True, "photo": photo_out(saved)}

@router.post("/upload", status_code=201)
async def upload_photos(
    request: Request,
    file: List[UploadFile] = File(...),
    uploaderName: Optional[str] = Form(None),
    eventMoment: EventMoment = Form("general"),
    comment: Optional[str] = Form(None),
    db=Depends(get_db),
):
    """
    하객 사진 업로드 (multipart, 필드명 file 여러 개)
    - 전부 검사한 뒤에 저장 시작. 하나라도 불량이면 아무것도 저장하지 않음
    - 로컬 디스크 + photos 문서(uploadSource=local) → 바로 check-new 대상
    """
    if len(file) > settings.UPLOAD_MAX_FILES:
        raise BadRequest(f"Máximo {settings.UPLOAD_MAX_FILES} archivos permitidos")

    now = utc_now()
    pending = []
    for f in file:
        name = f.filename or "foto"
        content_type = (f.content_type or "").lower()
        if content_type not in uploads.ALLOWED_TYPES:
            raise BadRequest(f"Error procesando {name}",
                             details=f"Tipo de archivo no permitido: {content_type or 'desconocido'}")

        data = await f.read()
        if not data:
            raise BadRequest(f"Error procesando {name}", details="Archivo vacío")
        if len(data) > settings.UPLOAD_MAX_BYTES:
            raise BadRequest(f"Error procesando {name}", details="Archivo demasiado grande")
        try:
            width, height = uploads.read_dimensions(data)
        except ValueError as e:
            raise BadRequest(f"Error procesando {name}", details=str(e))

        filename = uploads.unique_filename(name, content_type, now)
        path, url = uploads.upload_location(filename, now)
        try:
            photo = PhotoIn(
                filename=filename,
                originalName=name,
                uploadSource="local",
                localPath=url,
                thumbnailUrl=url,
                fileSize=len(data),
                mimeType=content_type,
                dimensions={"width": width, "height": height},
                uploader={"name": uploaderName} if uploaderName else None,
                eventMoment=eventMoment,
                comment=comment,
            )
        except ValidationError as e:
            raise BadRequest(f"Error procesando {name}", details=first_error_message(e.errors()))
        pending.append((path, data, photo))

    meta = get_uploader_meta(request)
    saved = []
    for path, data, photo in pending:
        try:
            await uploads.save_bytes(path, data)
        except OSError as e:
            raise StoreError("Error guardando el archivo", details=str(e)) from e
        try:
            doc = await photo_store.create_photo(photos_collection(db), photo.to_doc(meta))
        except Exception:
            # 문서 없이 파일만 남지 않게
            uploads.remove_file(path)
            raise
        saved.append(photo_out(doc))

    log.info("upload: %d photo(s) by %s", len(saved), uploaderName or "anon")
    n = len(saved)
    return {
        "success": True,
        "message": f"{n} foto{'s' if n > 1 else ''} subida{'s' if n > 1 else ''} exitosamente",
        "photos": saved,
    }

@router.get("/{photo_id}")
async def get_photo(photo_id: str, db=Depends(get_db)):
    """사진 상세 (조회수 +1)"""
    oid = _parse_oid(photo_id)
    doc = await photo_store.view_photo(photos_collection(db), oid)
    if not doc:
        raise NotFound("Foto no encontrada")
    return {"success": True, "photo": photo_out(doc, detail=True)}

@router.put("/{photo_id}")
async def update_photo(photo_id: str, payload: PhotoUpdate, db=Depends(get_db)):
    """허용 필드(comment/eventMoment/tags/isPublic/moderationStatus)만 수정"""
    oid = _parse_oid(photo_id)
    changes = payload.to_set()
    if not changes:
        raise BadRequest("No hay campos válidos para actualizar")

    doc = await photo_store.update_photo(photos_collection(db), oid, changes)
    if not doc:
        raise NotFound("Foto no encontrada")
    return {
        "success": True,
        "message": "Foto actualizada exitosamente",
        "photo": photo_out(doc),
    }

@router.delete("/{photo_id}")
async def delete_photo(photo_id: str, db=Depends(get_db)):
    """메타데이터 삭제. 실제 파일 정리는 반환된 참조로 별도 처리"""
    oid = _parse_oid(photo_id)
    doc = await photo_store.delete_photo(photos_collection(db), oid)
    if not doc:
        raise NotFound("Foto no encontrada")
    log.warning("photo %s deleted; storage cleanup pending for %s",
                oid, doc.get("cloudinaryId") or doc.get("localPath"))
    return {
        "success": True,
        "message": "Foto eliminada exitosamente",
        "deletedPhoto": {
            "_id": str(doc["_id"]),
            "filename": doc.get("filename"),
            "uploadSource": doc.get("uploadSource"),
            "cloudinaryId": doc.get("cloudinaryId"),
            "localPath": doc.get("localPath"),
        },
    }
