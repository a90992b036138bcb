"""
GET /photos/check-new — 새 사진 폴링 계약

- hasNew == (count > 0), count 는 정확한 개수
- recentPhotos 는 최신순 최대 5장
- since 누락/파싱 불가 → 400, 저장소 조회 없음
- 저장소 실패 → 500 {success:false, error, details}
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from app.db.init import get_db
from app.services.utils import to_iso


def _iso(dt):
    return to_iso(dt)


class TestCheckNewScenarios:

    @pytest.mark.asyncio
    async def test_three_photos_since_before_all(self, test_client, seed_photos, minutes):
        await seed_photos([minutes(0), minutes(5), minutes(10)])

        r = await test_client.get("/photos/check-new", params={"since": _iso(minutes(-60))})

        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["hasNew"] is True
        assert body["count"] == 3
        assert [p["uploadedAt"] for p in body["recentPhotos"]] == [
            _iso(minutes(10)), _iso(minutes(5)), _iso(minutes(0)),
        ]

    @pytest.mark.asyncio
    async def test_since_equal_to_latest_returns_nothing(self, test_client, seed_photos, minutes):
        await seed_photos([minutes(0), minutes(5), minutes(10)])

        r = await test_client.get("/photos/check-new", params={"since": _iso(minutes(10))})

        body = r.json()
        assert body["hasNew"] is False
        assert body["count"] == 0
        assert body["recentPhotos"] == []

    @pytest.mark.asyncio
    async def test_preview_capped_at_five(self, test_client, seed_photos, minutes):
        await seed_photos([minutes(i) for i in range(1, 8)])

        r = await test_client.get("/photos/check-new", params={"since": _iso(minutes(0))})

        body = r.json()
        assert body["count"] == 7
        stamps = [p["uploadedAt"] for p in body["recentPhotos"]]
        assert stamps == [_iso(minutes(i)) for i in (7, 6, 5, 4, 3)]

    @pytest.mark.asyncio
    async def test_only_public_and_ready_are_counted(self, test_client, seed_photos, minutes):
        await seed_photos([minutes(1)])
        await seed_photos([minutes(2)], isPublic=False)
        await seed_photos([minutes(3)], status="processing")
        await seed_photos([minutes(4)], status="error")

        r = await test_client.get("/photos/check-new", params={"since": _iso(minutes(0))})

        body = r.json()
        assert body["count"] == 1
        assert body["recentPhotos"][0]["uploadedAt"] == _iso(minutes(1))

    @pytest.mark.asyncio
    async def test_preview_shape_and_uploader_fallback(self, test_client, seed_photos, minutes):
        docs = await seed_photos([minutes(1)], uploader={"ip": "10.0.0.2", "userAgent": "x"},
                                 eventMoment="fiesta")

        r = await test_client.get("/photos/check-new", params={"since": _iso(minutes(0))})

        preview = r.json()["recentPhotos"][0]
        assert set(preview) == {"id", "filename", "originalName", "uploadedAt", "uploaderName", "eventMoment"}
        assert preview["id"] == str(docs[0]["_id"])
        assert preview["uploaderName"] == "Invitado"
        assert preview["eventMoment"] == "fiesta"

    @pytest.mark.asyncio
    async def test_since_is_echoed_normalized(self, test_client, seed_photos):
        r = await test_client.get("/photos/check-new", params={"since": "2024-06-15T12:00:00+02:00"})

        assert r.status_code == 200
        assert r.json()["since"] == "2024-06-15T10:00:00.000Z"


class TestCheckNewProperties:

    @pytest.mark.asyncio
    async def test_idempotent_without_writes(self, test_client, seed_photos, minutes):
        await seed_photos([minutes(i) for i in range(6)])
        params = {"since": _iso(minutes(-1))}

        first = (await test_client.get("/photos/check-new", params=params)).json()
        second = (await test_client.get("/photos/check-new", params=params)).json()

        assert first["count"] == second["count"]
        assert first["recentPhotos"] == second["recentPhotos"]

    @pytest.mark.asyncio
    async def test_returned_photo_not_returned_for_its_own_timestamp(self, test_client, seed_photos, minutes):
        await seed_photos([minutes(1), minutes(2), minutes(3)])

        body = (await test_client.get("/photos/check-new", params={"since": _iso(minutes(0))})).json()

        for p in body["recentPhotos"]:
            again = (await test_client.get("/photos/check-new", params={"since": p["uploadedAt"]})).json()
            assert p["id"] not in {q["id"] for q in again["recentPhotos"]}
            assert again["hasNew"] == (again["count"] > 0)

    @pytest.mark.asyncio
    async def test_check_new_does_not_mutate_store(self, test_client, photos, seed_photos, minutes):
        await seed_photos([minutes(1)])
        before = await photos.find({}).to_list(length=None)

        await test_client.get("/photos/check-new", params={"since": _iso(minutes(0))})

        after = await photos.find({}).to_list(length=None)
        assert before == after


class TestCheckNewValidation:

    @pytest.mark.asyncio
    async def test_missing_since_is_400_without_query(self, test_client):
        with patch("app.api.routes_photo.photo_store.check_new", new=AsyncMock()) as mock_check:
            r = await test_client.get("/photos/check-new")

        assert r.status_code == 400
        assert r.json() == {"success": False, "error": 'Parámetro "since" es requerido'}
        mock_check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_since_is_400(self, test_client):
        r = await test_client.get("/photos/check-new", params={"since": "  "})
        assert r.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("since", [
        "not-a-date",
        "0001-01-01T00:00:00+01:00",
        "9999-12-31T23:59:59-01:00",
    ])
    async def test_invalid_since_is_400_without_query(self, test_client, since):
        with patch("app.api.routes_photo.photo_store.check_new", new=AsyncMock()) as mock_check:
            r = await test_client.get("/photos/check-new", params={"since": since})

        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert "inválida" in body["error"]
        mock_check.assert_not_awaited()


class TestCheckNewStoreFailure:

    @pytest.mark.asyncio
    async def test_store_failure_is_500_with_details(self, test_client):
        from app.main import app

        broken = MagicMock()
        broken.count_documents = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        db = MagicMock()
        db.__getitem__.return_value = broken
        app.dependency_overrides[get_db] = lambda: db

        r = await test_client.get("/photos/check-new", params={"since": "2024-06-15T09:00:00Z"})

        assert r.status_code == 500
        body = r.json()
        assert body["success"] is False
        assert body["error"]
        assert "no servers" in body["details"]
        assert "recentPhotos" not in body
