# app/main.py
# FastAPI 앱 초기화 및 라우터 설정
# 라우터는 각 기능별로 분리하여 관리

from __future__ import annotations

import logging
from asyncio import sleep
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.errors import register_error_handlers
from app.api.routes_photo import router as photo_router   # 하객 사진 갤러리/폴링
from app.api.routes_guest import router as guest_router   # 하객 관리/참석 확인
from app.api.routes_debug import router as debug_router   # 브라우저 디버그 로그

# DB 초기화/인덱스
# init_db/close_db: 앱 시작/종료 시 커넥션 생성/정리
# get_db: 런타임에 DB 핸들 얻기
from app.db.init import get_db, init_db, close_db
from app.db.indexes import ensure_indexes

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
log = logging.getLogger("app")

app = FastAPI(title="Invitación XV - API", version="0.1.0")

# CORS: 프론트 origin 허용
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# 로컬 업로드 파일 서빙 (디렉터리는 startup 에서 생성)
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

# 앱 시작/종료 이벤트 핸들러
@app.on_event("startup")
async def on_startup() -> None:
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    # 1) DB 먼저 붙는다 (DB_INIT_RETRIES 회, DB_INIT_DELAY 간격)
    db = None
    for i in range(settings.DB_INIT_RETRIES):
        try:
            db = await init_db()
            log.info("[startup] db ready")
            break
        except Exception as e:
            log.warning("[startup] db init retry %d: %s", i + 1, e)
            await sleep(settings.DB_INIT_DELAY)
    if db is None:
        log.error("[startup] db init failed after retries")
        return

    # 2) 인덱스 보장
    try:
        await ensure_indexes()
        log.info("[startup] indexes ensured")
    except Exception as e:
        log.error("[startup] ensure_indexes failed: %s", e)

@app.on_event("shutdown")
async def on_shutdown() -> None:
    # 몽고db 커넥션 정리
    await close_db()

@app.get("/")
async def root():
    return {"status": "ok"}

@app.get("/health")
async def health():
    # 헬스체크 + MongoDB ping
    ok = {"status": "ok", "db": "skip"}
    try:
        db = get_db()
    except Exception:
        return ok
    try:
        await db.command("ping")
        ok["db"] = "ok"
    except Exception as e:
        ok["db"] = f"error: {e}"
    return ok

# 라우터 prefix는 각 파일 내에서 정의함 , 중복 prefix 금지
app.include_router(photo_router)
app.include_router(guest_router)
app.include_router(debug_router)
