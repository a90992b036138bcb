# 환경변수 로딩 (.env)
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    MONGO_URI: str = "mongodb://localhost:27017"  # 필요 시 prod/staging로 분리
    MONGO_DB: str = "invitacion"
    PHOTOS_COLLECTION: str = "photos"
    GUESTS_COLLECTION: str = "guests"
    MONGO_TIMEOUT_MS: int = 5000  # 서버 선택/소켓 타임아웃 (만료 시 500)

    DB_INIT_RETRIES: int = 20
    DB_INIT_DELAY: float = 1.0

    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"
    LOG_LEVEL: str = "INFO"

    PREVIEW_LIMIT: int = 5       # check-new 미리보기 최대 개수
    POLL_INTERVAL: float = 30.0  # 갤러리 클라이언트 기본 폴링 주기(초)

    # 로컬 업로드 (POST /photos/upload)
    UPLOAD_DIR: str = "uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    UPLOAD_MAX_FILES: int = 10
    UPLOAD_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB

    CONFIRM_SIMILARITY_THRESHOLD: float = 80.0  # 참석 확인 시 기존 하객으로 볼 최소 유사도(%)

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
