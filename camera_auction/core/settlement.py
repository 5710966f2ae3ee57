# camera_auction/core/settlement.py
# 낙찰가 → 플랫폼 수수료 / 판매자 정산액 계산 (순수 함수, I/O 없음)
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from camera_auction.errors import InvalidAmount
from camera_auction.policy.loader import get_fee_policy
from camera_auction.policy.schema import CommissionTier, FeePolicy

FEE_PAYER_SELLER = "seller"
FEE_PAYER_BUYER = "buyer"


@dataclass(frozen=True)
class Settlement:
    sale_price: int
    commission_rate: float
    commission_amount: int
    fixed_fee_applied: int
    ancillary_fee: int
    ancillary_fee_payer: Optional[str]
    seller_payout: int

    @property
    def seller_fee_deduction(self) -> int:
        """판매자 정산에서 빠지는 수수료 외 금액 (고정 수수료 + 판매자 부담 부가 수수료)."""
        extra = self.ancillary_fee if self.ancillary_fee_payer == FEE_PAYER_SELLER else 0
        return self.fixed_fee_applied + extra

    @property
    def buyer_total(self) -> int:
        extra = self.ancillary_fee if self.ancillary_fee_payer == FEE_PAYER_BUYER else 0
        return self.sale_price + extra

    def as_fields(self) -> dict:
        return {
            "sale_price": self.sale_price,
            "commission_rate": self.commission_rate,
            "commission_amount": self.commission_amount,
            "fixed_fee": self.fixed_fee_applied,
            "ancillary_fee": self.ancillary_fee,
            "ancillary_fee_payer": self.ancillary_fee_payer,
            "seller_payout": self.seller_payout,
        }


def round_half_up(value: Decimal) -> int:
    """0.5 는 올림. 양수 기준 JS Math.round 와 같은 결과."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _require_whole_pounds(name: str, value, *, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer number of pounds, got={value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidAmount(f"{name} must be positive, got={value}")
    return value


def rate_for_price(sale_price: int, tiers: Sequence[CommissionTier]) -> float:
    for tier in tiers:
        if tier.upper_bound is None or sale_price <= tier.upper_bound:
            return tier.rate_percent
    # validate_fee_policy 가 마지막 open 구간을 보장하므로 여기까지 오면 테이블이 깨진 것
    raise InvalidAmount(f"no commission tier covers price={sale_price}")


def fee_payer_for_listing(listing_id: Optional[str], policy: FeePolicy) -> str:
    if listing_id and str(listing_id) in policy.legacy_buyer_pays_fee_listing_ids:
        return FEE_PAYER_BUYER
    return FEE_PAYER_SELLER


def compute_settlement(
    sale_price: int,
    *,
    fixed_fee: Optional[int] = None,
    commission_rate_override: Optional[float] = None,
    listing_id: Optional[str] = None,
    policy: Optional[FeePolicy] = None,
) -> Settlement:
    """
    낙찰가(파운드 정수)를 수수료/정산액으로 분해한다.

    - 요율: commission_rate_override 가 있으면 그 값, 없으면 구간표
    - commission_amount = round_half_up(sale_price × rate / 100)
    - seller_payout = max(0, sale_price − commission − 고정수수료 − 판매자부담 부가수수료)
    """
    policy = policy or get_fee_policy()

    _require_whole_pounds("sale_price", sale_price)
    if sale_price > policy.max_sale_price:
        raise InvalidAmount(
            f"sale_price={sale_price} exceeds max {policy.max_sale_price} (pence passed as pounds?)"
        )

    fixed = policy.fixed_fee if fixed_fee is None else fixed_fee
    _require_whole_pounds("fixed_fee", fixed, allow_zero=True)

    if commission_rate_override is not None:
        if isinstance(commission_rate_override, bool) or not isinstance(commission_rate_override, (int, float)):
            raise InvalidAmount(f"commission_rate_override must be a number, got={commission_rate_override!r}")
        if not (0 <= commission_rate_override <= 100):
            raise InvalidAmount(f"commission_rate_override must be 0~100, got={commission_rate_override}")
        rate = commission_rate_override
    else:
        rate = rate_for_price(sale_price, policy.tiers)

    commission = round_half_up(Decimal(sale_price) * Decimal(str(rate)) / Decimal(100))

    ancillary = policy.ancillary_fee
    payer = fee_payer_for_listing(listing_id, policy) if ancillary > 0 else None
    seller_ancillary = ancillary if payer == FEE_PAYER_SELLER else 0

    payout = max(0, sale_price - commission - fixed - seller_ancillary)

    return Settlement(
        sale_price=sale_price,
        commission_rate=rate,
        commission_amount=commission,
        fixed_fee_applied=fixed,
        ancillary_fee=ancillary,
        ancillary_fee_payer=payer,
        seller_payout=payout,
    )
