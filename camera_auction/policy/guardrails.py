# camera_auction/policy/guardrails.py
from __future__ import annotations

from camera_auction.policy.schema import FeePolicy


class FeePolicyError(ValueError):
    pass


def validate_fee_policy(policy: FeePolicy) -> None:
    tiers = policy.tiers
    if not tiers:
        raise FeePolicyError("commission tiers must not be empty")

    # --- 구간: 상한 오름차순 + 마지막만 open ---
    prev_bound = 0
    for i, tier in enumerate(tiers):
        is_last = i == len(tiers) - 1
        if tier.upper_bound is None:
            if not is_last:
                raise FeePolicyError(f"open-ended tier must be last, got index={i}")
            continue
        if isinstance(tier.upper_bound, bool) or not isinstance(tier.upper_bound, int):
            raise FeePolicyError(f"tier upper_bound must be int, got={tier.upper_bound!r}")
        if tier.upper_bound <= prev_bound:
            raise FeePolicyError(
                f"tier bounds must be strictly increasing and positive, got={tier.upper_bound} after {prev_bound}"
            )
        prev_bound = tier.upper_bound
    if tiers[-1].upper_bound is not None:
        raise FeePolicyError("last tier must be open-ended (upper_bound=None)")

    # --- 요율: 0~100, 가격이 올라갈수록 같거나 낮아짐 ---
    prev_rate = None
    for tier in tiers:
        if not (0 <= float(tier.rate_percent) <= 100):
            raise FeePolicyError(f"rate_percent must be 0~100, got={tier.rate_percent}")
        if prev_rate is not None and float(tier.rate_percent) > prev_rate:
            raise FeePolicyError(
                f"rates must be non-increasing by price, got={tier.rate_percent} after {prev_rate}"
            )
        prev_rate = float(tier.rate_percent)

    # --- 금액 ---
    if policy.fixed_fee < 0:
        raise FeePolicyError(f"fixed_fee must be >=0, got={policy.fixed_fee}")
    if policy.ancillary_fee < 0:
        raise FeePolicyError(f"ancillary_fee must be >=0, got={policy.ancillary_fee}")
    if policy.max_sale_price <= 0:
        raise FeePolicyError(f"max_sale_price must be >0, got={policy.max_sale_price}")
