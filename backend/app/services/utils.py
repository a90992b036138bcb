# app/services/utils.py
# 시간/표시용 유틸
# - Mongo 는 밀리초 정밀도 + naive UTC 로 저장 → 비교/출력도 같은 기준으로 맞춘다
# - Cloudinary URL 변환 (표시/썸네일/상세)

from __future__ import annotations
import math
from datetime import datetime, timezone
from typing import Optional

def _trim_ms(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)

def to_naive_utc(dt: datetime) -> datetime:
    # aware → UTC 로 변환 후 tz 제거, naive 는 UTC 로 간주
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return _trim_ms(dt)

def utc_now() -> datetime:
    # uploadedAt 할당용 (저장소와 같은 ms 정밀도)
    return to_naive_utc(datetime.now(timezone.utc))

def parse_instant(value: Optional[str]) -> datetime:
    """ISO-8601 문자열 → naive UTC datetime. 파싱 불가면 ValueError."""
    s = (value or "").strip()
    if not s:
        raise ValueError("empty timestamp")
    if s[-1] in "zZ":
        s = s[:-1] + "+00:00"
    try:
        # UTC 변환에서 범위를 넘으면 OverflowError (예: 0001-01-01T00:00:00+01:00)
        return to_naive_utc(datetime.fromisoformat(s))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid timestamp: {value!r}") from e

def to_iso(dt: Optional[datetime]) -> Optional[str]:
    # JS toISOString() 과 같은 형식: 2024-01-01T10:00:00.000Z
    if dt is None:
        return None
    dt = to_naive_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{dt.microsecond // 1000:03d}Z"

def format_bytes(size: float) -> str:
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = max(0, min(int(math.floor(math.log(size, 1024))), len(units) - 1))
    value = round(size / (1024 ** i), 2)
    return f"{value:g} {units[i]}"

# --- Cloudinary 변환 ---------------------------------------------------------
DISPLAY_TRANSFORM = "f_auto,q_auto,w_800"
THUMB_TRANSFORM = "f_auto,q_auto,w_300,h_300,c_fill"
DETAIL_TRANSFORM = "f_auto,q_auto,w_1200"

def cloudinary_transform(url: str, transform: str) -> str:
    return url.replace("/upload/", f"/upload/{transform}/", 1)

def display_url(doc: dict, transform: str = DISPLAY_TRANSFORM) -> Optional[str]:
    if doc.get("uploadSource") == "cloudinary" and doc.get("cloudinaryUrl"):
        return cloudinary_transform(doc["cloudinaryUrl"], transform)
    return doc.get("localPath")

def thumbnail_url(doc: dict) -> Optional[str]:
    if doc.get("uploadSource") == "cloudinary" and doc.get("cloudinaryUrl"):
        return cloudinary_transform(doc["cloudinaryUrl"], THUMB_TRANSFORM)
    return doc.get("thumbnailUrl")
