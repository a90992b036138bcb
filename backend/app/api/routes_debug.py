# app/api/routes_debug.py
# 브라우저 디버그 로그 수집 — 서버 로그로 흘려보내기만 함 (저장 X)

from __future__ import annotations
import logging

from fastapi import APIRouter

from app.db.models.schemas import DebugLogIn

router = APIRouter(prefix="/debug-log", tags=["debug"])

client_log = logging.getLogger("client")

_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

@router.post("")
async def debug_log(payload: DebugLogIn):
    # 본문에 "error" 가 들어가면 레벨과 무관하게 ERROR 로 남김
    level = _LEVELS[payload.level]
    if "error" in payload.message.lower():
        level = logging.ERROR
    client_log.log(level, "[%s] %s: %s", payload.level.upper(), payload.timestamp, payload.message)
    return {"success": True}
