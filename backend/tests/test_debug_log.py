"""POST /debug-log — 브라우저 로그를 서버 로거로 전달"""

import logging

import pytest


class TestDebugLog:

    @pytest.mark.asyncio
    async def test_valid_entry_is_logged(self, test_client, caplog):
        with caplog.at_level(logging.INFO, logger="client"):
            r = await test_client.post("/debug-log", json={
                "message": "galería cargada", "level": "info", "timestamp": "2024-06-15T10:00:00Z",
            })

        assert r.status_code == 200
        assert r.json() == {"success": True}
        assert any(rec.levelno == logging.INFO and "galería cargada" in rec.getMessage()
                   for rec in caplog.records)

    @pytest.mark.asyncio
    async def test_message_mentioning_error_is_logged_as_error(self, test_client, caplog):
        with caplog.at_level(logging.INFO, logger="client"):
            await test_client.post("/debug-log", json={
                "message": "Upload Error: timeout", "level": "warn", "timestamp": "2024-06-15T10:00:00Z",
            })

        assert [rec.levelno for rec in caplog.records if rec.name == "client"] == [logging.ERROR]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"level": "info", "timestamp": "2024-06-15T10:00:00Z"},
        {"message": "", "level": "info", "timestamp": "2024-06-15T10:00:00Z"},
        {"message": 42, "level": "info", "timestamp": "2024-06-15T10:00:00Z"},
        {"message": "x", "level": "debug", "timestamp": "2024-06-15T10:00:00Z"},
        {"message": "x", "level": "info", "timestamp": "mañana"},
        {"message": "x", "level": "info"},
    ])
    async def test_invalid_body_is_400(self, test_client, body):
        r = await test_client.post("/debug-log", json=body)

        assert r.status_code == 400
        assert r.json()["success"] is False
