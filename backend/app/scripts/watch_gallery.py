# 갤러리 폴링 수동 확인용 스크립트
# 사용: python -m app.scripts.watch_gallery http://localhost:8000 10
import asyncio
import sys

from app.client.gallery import GalleryPoller

def _print_update(photos):
    newest = photos[0] if photos else {}
    print(f"[gallery] {len(photos)} photos, newest: {newest.get('originalName')} @ {newest.get('uploadedAt')}")

async def main(base_url: str = "http://localhost:8000", interval: float = 10.0):
    poller = GalleryPoller(base_url, interval=interval, on_update=_print_update)
    photos = await poller.load()
    print(f"loaded: {len(photos)}, watermark: {poller.watermark.isoformat()}")
    async with poller:
        while True:
            await asyncio.sleep(3600)

if __name__ == "__main__":
    args = sys.argv[1:]
    try:
        asyncio.run(main(*(args[:1]), *(float(a) for a in args[1:2])))
    except KeyboardInterrupt:
        pass
