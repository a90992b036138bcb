# app/db/models/photo.py
# 사진 메타데이터 문서 (바이트는 Cloudinary/로컬 디스크에 있음)
from __future__ import annotations
import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.utils import utc_now

EventMoment = Literal["ceremonia", "recepcion", "fiesta", "general"]
UploadSource = Literal["cloudinary", "local"]
PhotoStatus = Literal["uploading", "processing", "ready", "error"]
ModerationStatus = Literal["pending", "approved", "rejected"]
MimeType = Literal["image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"]

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp|gif)$", re.I)
_IP_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$|^([0-9a-f]{1,4}:){7}[0-9a-f]{1,4}$", re.I)

# 업로드 이후 수정 가능한 필드 (uploadedAt 은 절대 포함하지 않음)
UPDATABLE_FIELDS = ("comment", "eventMoment", "tags", "isPublic", "moderationStatus")


class Dimensions(BaseModel):
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)


class Uploader(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    ip: str = "0.0.0.0"
    userAgent: str = Field(default="unknown", max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("ip")
    @classmethod
    def _check_ip(cls, v: str) -> str:
        if v != "0.0.0.0" and not _IP_RE.match(v):
            raise ValueError("IP inválida")
        return v


class PhotoIn(BaseModel):
    """POST /photos 바디 — 이미 업로드된 이미지의 메타데이터 등록"""
    model_config = ConfigDict(extra="ignore")

    filename: str = Field(..., min_length=1)
    originalName: str = Field(..., min_length=1)

    cloudinaryId: Optional[str] = None
    cloudinaryUrl: Optional[str] = None
    localPath: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    uploadSource: UploadSource

    fileSize: int = Field(..., ge=0, le=MAX_FILE_SIZE)
    mimeType: MimeType
    dimensions: Dimensions

    uploader: Optional[Uploader] = None

    eventMoment: EventMoment = "general"
    comment: Optional[str] = Field(default=None, max_length=500)

    isPublic: bool = True
    status: PhotoStatus = "ready"
    moderationStatus: ModerationStatus = "approved"

    tags: List[str] = Field(default_factory=list)

    @field_validator("filename", "originalName", "comment", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, v: List[str]) -> List[str]:
        out = [t.strip() for t in v if t and t.strip()]
        if any(len(t) > 50 for t in out):
            raise ValueError("tag demasiado largo (máx. 50)")
        return out

    @field_validator("cloudinaryUrl")
    @classmethod
    def _check_cloudinary_url(cls, v: Optional[str]) -> Optional[str]:
        if v and "cloudinary.com" not in v:
            raise ValueError("URL de Cloudinary inválida")
        return v

    @field_validator("localPath")
    @classmethod
    def _check_local_path(cls, v: Optional[str]) -> Optional[str]:
        if v and not _IMAGE_EXT_RE.search(v):
            raise ValueError("Ruta local debe ser una imagen válida")
        return v

    @model_validator(mode="after")
    def _check_storage_ref(self):
        # 최소 하나의 URL + uploadSource 와 일치
        if not self.cloudinaryUrl and not self.localPath:
            raise ValueError("Se requiere cloudinaryUrl o localPath")
        if self.uploadSource == "cloudinary" and not self.cloudinaryUrl:
            raise ValueError("uploadSource cloudinary requiere cloudinaryUrl")
        if self.uploadSource == "local" and not self.localPath:
            raise ValueError("uploadSource local requiere localPath")
        return self

    def to_doc(self, uploader_meta: dict, now: Optional[datetime] = None) -> dict:
        """저장용 문서. uploadedAt 은 항상 서버 시각."""
        uploader = self.uploader.model_dump() if self.uploader else {}
        if not self.uploader or "ip" not in self.uploader.model_fields_set:
            uploader["ip"] = uploader_meta.get("ip", "0.0.0.0")
        if not self.uploader or "userAgent" not in self.uploader.model_fields_set:
            uploader["userAgent"] = uploader_meta.get("userAgent", "unknown")
        doc = self.model_dump(exclude={"uploader"}, exclude_none=True)
        doc["uploader"] = uploader
        doc["uploadedAt"] = now or utc_now()
        doc["viewCount"] = 0
        return doc


class PhotoUpdate(BaseModel):
    """PUT /photos/{id} — 허용 필드만, 나머지는 무시"""
    model_config = ConfigDict(extra="ignore")

    comment: Optional[str] = Field(default=None, max_length=500)
    eventMoment: Optional[EventMoment] = None
    tags: Optional[List[str]] = None
    isPublic: Optional[bool] = None
    moderationStatus: Optional[ModerationStatus] = None

    def to_set(self) -> dict:
        # 명시적으로 보낸 필드만 $set
        return {k: getattr(self, k) for k in UPDATABLE_FIELDS if k in self.model_fields_set}
