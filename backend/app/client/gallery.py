# app/client/gallery.py
# 갤러리 폴링 클라이언트 (httpx 비동기)
# - 고정 주기로 /photos/check-new 호출 → hasNew 면 /photos?since= 전체 페이지를 받아 병합
# - 동시에 하나의 폴링만 (진행 중이면 이번 틱은 건너뜀)
# - stop() 이후에는 어떤 결과도 반영하지 않음
# 의존: httpx

from __future__ import annotations
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from app.core.config import settings
from app.services.utils import parse_instant, to_iso, utc_now

log = logging.getLogger(__name__)

OnUpdate = Callable[[List[Dict]], Optional[Awaitable[None]]]


class GalleryPoller:
    """
    로컬 사진 목록(최신순)과 워터마크를 들고, 서버와 주기적으로 맞춘다.

    워터마크: 이 시각 이전 사진은 이미 다 갖고 있다고 보는 기준.
    새 사진을 성공적으로 병합한 뒤에만 앞으로 당긴다.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        client: Optional[httpx.AsyncClient] = None,
        interval: Optional[float] = None,
        watermark: Optional[datetime] = None,
        page_size: int = 50,
        on_update: Optional[OnUpdate] = None,
        timeout: float = 10.0,
    ):
        self._own_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.interval = settings.POLL_INTERVAL if interval is None else interval
        self.page_size = page_size
        self.on_update = on_update

        self.watermark: datetime = watermark or utc_now()
        self.photos: List[Dict] = []

        self._in_flight = False
        self._closed = False
        self._task: Optional[asyncio.Task] = None

    # --- 수명주기 ------------------------------------------------------------
    async def __aenter__(self) -> "GalleryPoller":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self) -> None:
        if self._closed:
            raise RuntimeError("poller already stopped")
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        # 먼저 닫힘 표시 → 진행 중 폴링 결과도 버려짐
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._own_client:
            await self.client.aclose()

    async def _run(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once()
            except Exception:
                # 루프는 계속. 다음 틱에서 다시 시도
                log.exception("gallery poll crashed")

    # --- 초기 로드 -----------------------------------------------------------
    async def load(self) -> List[Dict]:
        """첫 페이지를 받아 목록을 채우고, 가장 최신 uploadedAt 으로 워터마크를 맞춘다."""
        r = await self.client.get("/photos", params={"page": 1, "limit": self.page_size})
        r.raise_for_status()
        photos = r.json().get("photos") or []
        if self._closed:
            return self.photos
        self.photos = []
        self._merge(photos)
        if self.photos:
            self.watermark = parse_instant(self.photos[0]["uploadedAt"])
        return self.photos

    # --- 폴링 ----------------------------------------------------------------
    async def poll_once(self) -> bool:
        """한 번 폴링. 새 사진을 병합했으면 True. 실패/중복 호출/닫힘이면 False."""
        if self._closed or self._in_flight:
            return False
        self._in_flight = True
        try:
            since = self.watermark
            r = await self.client.get("/photos/check-new", params={"since": to_iso(since)})
            r.raise_for_status()
            body = r.json()
            if not body.get("success") or not body.get("hasNew"):
                return False

            # 미리보기는 최대 5장이라 참고용. 실제 목록은 따로 받는다
            fresh = await self._fetch_since(since)
            if self._closed:
                return False

            added = self._merge(fresh, body.get("recentPhotos") or [])
            log.info("gallery poll: count=%s merged=%d watermark=%s",
                     body.get("count"), len(added), to_iso(self.watermark))
        except (httpx.HTTPError, ValueError) as e:
            # 다음 틱에서 재시도. 상태는 그대로
            log.warning("gallery poll failed: %s", e)
            return False
        finally:
            self._in_flight = False

        if added and self.on_update and not self._closed:
            try:
                res = self.on_update(list(self.photos))
                if asyncio.iscoroutine(res):
                    await res
            except Exception:
                # 병합은 이미 끝남. 콜백 실패는 폴링 결과에 영향 없음
                log.exception("gallery on_update callback failed")
        return bool(added)

    async def _fetch_since(self, since: datetime) -> List[Dict]:
        out: List[Dict] = []
        page = 1
        while True:
            r = await self.client.get(
                "/photos",
                params={"since": to_iso(since), "page": page, "limit": self.page_size},
            )
            r.raise_for_status()
            body = r.json()
            out.extend(body.get("photos") or [])
            pages = (body.get("pagination") or {}).get("pages") or 0
            if page >= pages:
                return out
            page += 1

    # --- 병합 ----------------------------------------------------------------
    def _merge(self, fresh: List[Dict], preview: Optional[List[Dict]] = None) -> List[Dict]:
        # id 로 중복 제거 후 uploadedAt 내림차순. 워터마크는 본 것 중 최신으로
        known = {p.get("id") or p.get("_id") for p in self.photos}
        added = []
        for p in fresh:
            pid = p.get("id") or p.get("_id")
            if pid and pid not in known:
                known.add(pid)
                added.append(p)

        if added:
            self.photos = sorted(self.photos + added, key=lambda p: p.get("uploadedAt") or "", reverse=True)

        # 미리보기까지 포함: 목록에는 안 나오는(검수 대기) 사진이 매 틱 재조회를 일으키지 않게.
        # 그 사진이 나중에 승인돼도 이미 워터마크 뒤라 이 클라이언트는 병합하지 않는다 (새로 load() 하면 보임)
        stamps = [p.get("uploadedAt") for p in list(fresh) + list(preview or []) if p.get("uploadedAt")]
        if stamps:
            newest = max(parse_instant(s) for s in stamps)
            if newest > self.watermark:
                self.watermark = newest
        return added
