# 컬렉션 인덱스 생성
# 앱 스타트업에서 한 번 ensure_indexes()를 await로 호출한다.

from app.db.init import get_db, guests_collection, photos_collection

# 사진 컬렉션 인덱스
async def ensure_photo_indexes(db):
    col = photos_collection(db)
    await col.create_index([("uploadedAt", -1)])                 # 최신순 정렬 / check-new 범위
    await col.create_index([("isPublic", 1), ("status", 1), ("uploadedAt", -1)])  # 공개 갤러리
    await col.create_index("eventMoment")
    await col.create_index("uploader.name")
    await col.create_index("filename", unique=True)
    await col.create_index("cloudinaryId", sparse=True)

# 하객 컬렉션 인덱스 (이름 중복은 대소문자 무시라서 앱에서 검사)
async def ensure_guest_indexes(db):
    col = guests_collection(db)
    await col.create_index("name")
    await col.create_index([("status", 1), ("relation", 1)])
    await col.create_index("phone", sparse=True)
    await col.create_index([("createdAt", -1)])

async def ensure_indexes():
    db = get_db()
    await ensure_photo_indexes(db)
    await ensure_guest_indexes(db)
