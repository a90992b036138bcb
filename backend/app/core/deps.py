# 공용 의존성/헬퍼 (업로더 IP/UA 추출 등)
from fastapi import Request

UNKNOWN_IP = "0.0.0.0"
MAX_UA = 500

def get_client_ip(request: Request) -> str:
    # 프록시 뒤에서는 X-Forwarded-For 첫 번째 값이 실제 클라이언트
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        ip = fwd.split(",")[0].strip()
        if ip:
            return ip
    real = request.headers.get("x-real-ip")
    if real:
        return real.strip()
    return request.client.host if request.client else UNKNOWN_IP

def get_uploader_meta(request: Request) -> dict:
    # 업로더 정보 기본값 (바디에 없을 때 채움)
    ua = request.headers.get("user-agent") or "unknown"
    return {"ip": get_client_ip(request), "userAgent": ua[:MAX_UA]}
