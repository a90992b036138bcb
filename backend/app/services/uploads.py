# app/services/uploads.py
# 로컬 디스크 업로드 유틸
# - 파일명 정리 + 고유 이름 (타임스탬프_랜덤_이름.확장자)
# - Pillow 로 실제 이미지인지 확인하고 가로/세로 읽기
# - UPLOAD_DIR/fotos/YYYY-MM-DD/ 아래 저장, 공개 URL 은 UPLOAD_URL_PREFIX 기준
# 의존: Pillow, aiofiles

from __future__ import annotations
import io
import logging
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Tuple

import aiofiles
from PIL import Image, UnidentifiedImageError

from app.core.config import settings

log = logging.getLogger(__name__)

ALLOWED_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
_EXT_BY_TYPE = {"image/jpeg": ".jpg", "image/jpg": ".jpg", "image/png": ".png", "image/webp": ".webp"}
_IMAGE_EXTS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

def sanitize_filename(name: str) -> str:
    s = re.sub(r"[^a-zA-Z0-9.-]", "_", name or "")
    s = re.sub(r"_+", "_", s).strip("_")
    return s.lower() or "foto"

def unique_filename(original: str, content_type: str, now: datetime) -> str:
    p = Path(original or "")
    ext = p.suffix.lower()
    if ext not in _IMAGE_EXTS:
        ext = _EXT_BY_TYPE.get(content_type, ".jpg")
    stamp = int(now.timestamp() * 1000)
    return f"{stamp}_{uuid.uuid4().hex[:9]}_{sanitize_filename(p.stem)}{ext}"

def read_dimensions(data: bytes) -> Tuple[int, int]:
    """이미지 바이트 → (width, height). 디코딩 안 되면 ValueError."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError("el archivo no es una imagen válida") from e
    return width, height

def upload_location(filename: str, now: datetime) -> Tuple[Path, str]:
    # (디스크 경로, 공개 URL)
    day = now.strftime("%Y-%m-%d")
    path = Path(settings.UPLOAD_DIR) / "fotos" / day / filename
    url = f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/fotos/{day}/{filename}"
    return path, url

async def save_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "wb") as f:
        await f.write(data)
    log.info("upload saved: %s (%d bytes)", path, len(data))

def remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
