# app/db/models/guest.py
# 하객 문서 + 참석 확인 입력
from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator

from app.services.utils import utc_now

Relation = Literal["familia", "amigos", "escuela", "trabajo", "otros"]
GuestStatus = Literal["pending", "invited", "confirmed", "declined"]

MAX_PARTY_SIZE = 50
GUEST_UPDATABLE_FIELDS = ("name", "phone", "relation", "status", "personalInvitation", "attendance", "notes")


def _strip_or_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class PersonalInvitation(BaseModel):
    numberOfGuests: int = Field(default=1, ge=1, le=MAX_PARTY_SIZE)
    message: Optional[str] = Field(default=None, max_length=500)


class Attendance(BaseModel):
    confirmed: bool = False
    confirmedAt: Optional[datetime] = None
    numberOfGuestsConfirmed: Optional[int] = Field(default=None, ge=0, le=MAX_PARTY_SIZE)
    comments: Optional[str] = Field(default=None, max_length=500)


class GuestIn(BaseModel):
    """POST /guests 바디"""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    relation: Relation
    status: GuestStatus = "pending"
    personalInvitation: Optional[PersonalInvitation] = None
    attendance: Optional[Attendance] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone", "notes", mode="before")
    @classmethod
    def _strip_optional(cls, v):
        return _strip_or_none(v)

    def to_doc(self, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        doc = self.model_dump(exclude_none=True)
        doc["createdAt"] = now
        doc["updatedAt"] = now
        return doc


class GuestUpdate(BaseModel):
    """PUT /guests/{id} — 보낸 필드만"""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    relation: Optional[Relation] = None
    status: Optional[GuestStatus] = None
    personalInvitation: Optional[PersonalInvitation] = None
    attendance: Optional[Attendance] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone", "notes", mode="before")
    @classmethod
    def _strip_optional(cls, v):
        return _strip_or_none(v)

    def to_set(self) -> dict:
        out = {}
        for k in GUEST_UPDATABLE_FIELDS:
            if k not in self.model_fields_set:
                continue
            v = getattr(self, k)
            if v is None and k in ("name", "relation", "status"):
                continue  # 필수 필드는 null 로 지우지 않음
            out[k] = v.model_dump(exclude_none=True) if isinstance(v, BaseModel) else v
        return out


class ConfirmIn(BaseModel):
    """POST /guests/confirm — 초대장 페이지의 참석 확인 폼"""
    name: str = Field(..., min_length=2, max_length=100)
    numberOfGuests: StrictInt = Field(..., ge=0, le=MAX_PARTY_SIZE)
    willAttend: StrictBool
    comments: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("comments", mode="before")
    @classmethod
    def _strip_comments(cls, v):
        return _strip_or_none(v)

    @field_validator("phone", mode="before")
    @classmethod
    def _check_phone(cls, v):
        v = _strip_or_none(v)
        if isinstance(v, str) and len(v) < 10:
            raise ValueError("El teléfono debe tener al menos 10 dígitos")
        return v
