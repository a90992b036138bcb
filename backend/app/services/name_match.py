# app/services/name_match.py
# 하객 이름 매칭 유틸 (참석 확인 폼 → 기존 하객 찾기)
# - "María José" / "maria jose" / "Maria Jose Gonzalez" 같은 변형을 같은 사람으로 수렴
# - 전화번호가 있으면 번호 일치가 이름보다 우선

from __future__ import annotations
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional

MIN_NAME_LENGTH = 2
PARTIAL_WORD_MIN = 60.0     # 부분 일치에서 단어 하나를 "맞음"으로 칠 최소 유사도
PHONE_CONFLICT_PENALTY = 20.0

def normalize_text(text: str) -> str:
    # 소문자 → 악센트 제거(NFD 결합문자) → 영숫자/공백만 → 공백 정리
    s = unicodedata.normalize("NFD", (text or "").lower())
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Mn")
    s = re.sub(r"[^a-z0-9\s]", " ", s)
    return re.sub(r"\s+", " ", s).strip()

def normalize_phone(phone: Optional[str]) -> str:
    digits = re.sub(r"\D", "", phone or "")
    # 멕시코 국가번호(52) + 10자리 → 국내 번호로 비교
    if len(digits) == 12 and digits.startswith("52"):
        return digits[2:]
    return digits

def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a or not b:
        return len(a) or len(b)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        cur = [i]
        for j, cb in enumerate(b, 1):
            cur.append(min(
                prev[j - 1] + (ca != cb),  # 치환
                cur[j - 1] + 1,            # 삽입
                prev[j] + 1,               # 삭제
            ))
        prev = cur
    return prev[-1]

def similarity(a: str, b: str) -> float:
    """정규화한 두 문자열의 유사도 (0~100, 소수 둘째 자리)"""
    na, nb = normalize_text(a), normalize_text(b)
    if na == nb:
        return 100.0
    if not na or not nb:
        return 0.0
    longest = max(len(na), len(nb))
    return max(0.0, round((longest - levenshtein(na, nb)) / longest * 100, 2))

def partial_similarity(search: str, full_name: str) -> float:
    """
    검색어의 단어별로 이름 안에서 가장 비슷한 단어를 찾고,
    맞은 단어들의 평균 × (맞은 단어 수 / 검색 단어 수).
    "María" → "María José González" 같은 경우.
    """
    search_words = [w for w in normalize_text(search).split(" ") if len(w) > 1]
    full_words = [w for w in normalize_text(full_name).split(" ") if len(w) > 1]
    if not search_words or not full_words:
        return 0.0

    scores = []
    for sw in search_words:
        best = max(similarity(sw, fw) for fw in full_words)
        if best >= PARTIAL_WORD_MIN:
            scores.append(best)
    if not scores:
        return 0.0
    return (sum(scores) / len(scores)) * (len(scores) / len(search_words))

def _score(search: str, guest: Dict[str, Any]) -> Dict[str, Any]:
    fuzzy = similarity(search, guest["name"])
    partial = partial_similarity(search, guest["name"])
    return {
        "guest": guest,
        "similarity": max(fuzzy, partial),
        "matchType": "partial" if partial > fuzzy else "fuzzy",
        "isExactMatch": normalize_text(search) == normalize_text(guest["name"]),
    }

def _named(guests: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [g for g in guests if isinstance(g.get("name"), str) and g["name"]]

def best_name_match(
    name: str, guests: Iterable[Dict[str, Any]], threshold: float
) -> Optional[Dict[str, Any]]:
    search = normalize_text(name)
    if len(search) < MIN_NAME_LENGTH:
        return None

    best: Optional[Dict[str, Any]] = None
    for guest in _named(guests):
        if normalize_text(guest["name"]) == search:
            return {"guest": guest, "similarity": 100.0, "matchType": "exact",
                    "isExactMatch": True, "matchMethod": "name"}
        scored = _score(name, guest)
        if best is None or scored["similarity"] > best["similarity"]:
            best = scored

    if best is None or best["similarity"] < threshold:
        return None
    best["matchMethod"] = "name"
    return best

def best_match(
    name: str,
    guests: Iterable[Dict[str, Any]],
    phone: Optional[str] = None,
    threshold: float = 80.0,
) -> Optional[Dict[str, Any]]:
    """
    1) 전화번호가 같은 하객 → 유사도 100
    2) 이름 매칭. 찾은 하객의 번호가 입력 번호와 다르면 유사도를 깎는다
    반환된 유사도가 threshold 미만일 수 있으니 호출 쪽에서 다시 비교할 것.
    """
    guests = list(guests)
    wanted = normalize_phone(phone)
    if wanted:
        for guest in guests:
            if guest.get("phone") and normalize_phone(guest["phone"]) == wanted:
                return {
                    "guest": guest, "similarity": 100.0, "matchType": "exact",
                    "isExactMatch": True, "matchMethod": "phone", "phoneMatch": True,
                    "nameSimilarity": similarity(name, guest.get("name") or ""),
                }

    match = best_name_match(name, guests, threshold)
    if match is None or not wanted:
        return match

    match["phoneMatch"] = False
    if match["guest"].get("phone") and normalize_phone(match["guest"]["phone"]) != wanted:
        match["similarity"] = max(0.0, match["similarity"] - PHONE_CONFLICT_PENALTY)
        match["matchMethod"] = "name_with_phone_conflict"
        match["hasConflict"] = True
    return match

def similar_matches(
    name: str, guests: Iterable[Dict[str, Any]], threshold: float = 80.0, limit: int = 3
) -> List[Dict[str, Any]]:
    # 비슷한 하객이 여럿인지 (모호한 검색 판단용)
    if not name:
        return []
    scored = [_score(name, g) for g in _named(guests)]
    hits = [s for s in scored if s["similarity"] >= threshold]
    hits.sort(key=lambda s: s["similarity"], reverse=True)
    return hits[:limit]
