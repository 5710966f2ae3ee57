# camera_auction/policy/schema.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class CommissionTier:
    """수수료 구간 하나. upper_bound 는 포함(≤), None 이면 상한 없음."""

    upper_bound: Optional[int]
    rate_percent: float


@dataclass(frozen=True)
class FeePolicy:
    """정산 수수료 정책 (YAML 또는 project_rules 기본값에서 로드)."""

    # 가격 오름차순, 마지막 구간은 upper_bound=None
    tiers: tuple[CommissionTier, ...]

    # 판매자 고정 수수료 (파운드)
    fixed_fee: int = 0

    # 부가 수수료 (파운드). 기본은 판매자 부담
    ancillary_fee: int = 0

    # 부가 수수료를 구매자가 부담하는 레거시 리스팅 id
    legacy_buyer_pays_fee_listing_ids: frozenset[str] = field(default_factory=frozenset)

    # 단위 혼동(펜스→파운드) 방지 상한
    max_sale_price: int = 1_000_000
