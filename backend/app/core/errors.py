# app/core/errors.py
# API 에러 계층 + 공통 응답 봉투 {success: false, error, details?}
# 라우터/서비스는 ApiError 를 raise 하고, main.py 에서 핸들러를 등록한다.

from __future__ import annotations
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = logging.getLogger(__name__)


class ApiError(Exception):
    """구조화된 실패 응답으로 변환되는 예외의 베이스."""

    status_code = 500

    def __init__(self, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.error = error
        self.details = details

    def to_body(self) -> dict:
        body = {"success": False, "error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class BadRequest(ApiError):
    # 입력 검증 실패 — 저장소 조회 전에 끊는다
    status_code = 400


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class StoreError(ApiError):
    # Mongo 연결/쿼리 실패. 부분 결과는 절대 반환하지 않음
    status_code = 500


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.details or exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def first_error_message(errors: list) -> str:
    # pydantic errors() 첫 항목 → "loc: msg"
    first = (errors or [{}])[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Solicitud inválida")
    return f"{loc}: {msg}" if loc else msg


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # FastAPI 기본 422 대신 400 + 공통 봉투
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": first_error_message(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Error interno del servidor", "details": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
