# camera_auction/config/project_rules.py
# 경매 운영 규칙 (SSOT). 비즈니스 로직은 하드코딩 대신 여기 값만 참조한다.
from __future__ import annotations

from typing import Optional

# ---------------- 주간 경매 창 ----------------
AUCTION_TIMEZONE = "Europe/London"

# 월요일 01:00 시작 → 일요일 23:00 종료 (현지 벽시계 기준)
WINDOW_START_HOUR = 1
WINDOW_END_HOUR = 23

# ---------------- 입찰 ----------------
# 마감 5분 이내 입찰 시 마감을 now + 5분으로 연장 (soft close)
SOFT_CLOSE_MINUTES = 5

# (상한 미만, 최소 증가폭). 상한 None = 그 이상 전부
BID_INCREMENT_TABLE: list[tuple[Optional[int], int]] = [
    (100, 5),
    (500, 10),
    (1000, 25),
    (5000, 50),
    (10000, 100),
    (25000, 250),
    (50000, 500),
    (None, 1000),
]

# ---------------- 정산 ----------------
# (상한 포함, 수수료 %). 마지막 구간은 상한 None 이어야 함
COMMISSION_TIERS: list[tuple[Optional[int], int]] = [
    (499, 12),
    (999, 10),
    (4999, 8),
    (9999, 7),
    (24999, 6),
    (None, 5),
]

# 파운드 자리에 펜스가 들어오는 단위 혼동 방지용 상한
MAX_SALE_PRICE_GBP = 1_000_000

# 판매자 고정 수수료 (리스팅 수수료 등). 기본 0
DEFAULT_FIXED_FEE_GBP = 0

# 부가 수수료 (차량 사이트의 DVLA 수수료에 해당). 카메라 장비는 0
ANCILLARY_FEE_GBP = 0

# 부가 수수료를 구매자가 부담하는 레거시 리스팅 id 허용목록
LEGACY_BUYER_PAYS_FEE_LISTING_IDS: frozenset[str] = frozenset()

CURRENCY = "gbp"

# ---------------- 저장소 ----------------
# 스키마 미인식 필드 제거 후 재시도 횟수 상한
SCHEMA_WRITE_MAX_ATTEMPTS = 12

# ---------------- 결제 / 웹훅 ----------------
WEBHOOK_TOLERANCE_SECONDS = 300

# ---------------- 문의 폼 rate limit (프로세스 메모리, best-effort) ----------------
CONTACT_RATE_LIMIT = 5
CONTACT_RATE_WINDOW_SECONDS = 600
