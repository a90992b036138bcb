# app/db/models/schemas.py
# API 응답/입력 스키마 (프론트 필드명 camelCase 그대로)
from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.services.utils import (
    DETAIL_TRANSFORM,
    DISPLAY_TRANSFORM,
    display_url,
    parse_instant,
    thumbnail_url,
    to_iso,
)

DEFAULT_UPLOADER_NAME = "Invitado"

# # check-new 미리보기 한 장
class PhotoPreviewOut(BaseModel):
    id: str
    filename: str
    originalName: Optional[str] = None
    uploadedAt: str
    uploaderName: str = DEFAULT_UPLOADER_NAME
    eventMoment: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "PhotoPreviewOut":
        uploader = doc.get("uploader") or {}
        name = uploader.get("name") if isinstance(uploader, dict) else None
        return cls(
            id=str(doc["_id"]),
            filename=doc.get("filename", ""),
            originalName=doc.get("originalName"),
            uploadedAt=to_iso(doc.get("uploadedAt")),
            uploaderName=name or DEFAULT_UPLOADER_NAME,
            eventMoment=doc.get("eventMoment"),
        )

# # GET /photos/check-new 응답
class CheckNewOut(BaseModel):
    success: bool = True
    hasNew: bool
    count: int = Field(..., ge=0)
    since: str
    recentPhotos: List[PhotoPreviewOut] = Field(default_factory=list)

class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

# # 갤러리 목록
class PhotoListOut(BaseModel):
    success: bool = True
    photos: List[Dict[str, Any]]
    pagination: PaginationOut

# # 디버그 로그 입력 (브라우저 → 서버)
class DebugLogIn(BaseModel):
    message: str = Field(..., min_length=1)
    level: Literal["info", "warn", "error"]
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, v: str) -> str:
        parse_instant(v)  # ValueError → 400
        return v


def photo_out(doc: Dict[str, Any], detail: bool = False) -> Dict[str, Any]:
    """Mongo 문서 → JSON 직렬화 가능한 dict (ObjectId/datetime 변환 + 표시 URL)"""
    out = dict(doc)
    out["_id"] = str(out["_id"])
    out["id"] = out["_id"]
    for key in ("uploadedAt", "lastViewedAt", "createdAt", "updatedAt"):
        if key in out:
            out[key] = to_iso(out[key])
    out["displayUrl"] = display_url(doc, DETAIL_TRANSFORM if detail else DISPLAY_TRANSFORM)
    out["optimizedThumbnailUrl"] = thumbnail_url(doc)
    return out


def guest_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    """하객 문서 → JSON dict (attendance.confirmedAt 포함 날짜는 ISO)"""
    out = dict(doc)
    out["_id"] = str(out["_id"])
    out["id"] = out["_id"]
    for key in ("createdAt", "updatedAt"):
        if key in out:
            out[key] = to_iso(out[key])
    if isinstance(out.get("attendance"), dict):
        att = dict(out["attendance"])
        if "confirmedAt" in att:
            att["confirmedAt"] = to_iso(att["confirmedAt"])
        out["attendance"] = att
    return out
