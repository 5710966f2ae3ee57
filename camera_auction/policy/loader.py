# camera_auction/policy/loader.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from camera_auction.config import env
from camera_auction.config import project_rules as R
from camera_auction.policy.guardrails import FeePolicyError, validate_fee_policy
from camera_auction.policy.schema import CommissionTier, FeePolicy

logger = logging.getLogger(__name__)

_CACHE: Optional[FeePolicy] = None


def _deep_get(d: dict, key: str) -> Any:
    if key not in d:
        raise KeyError(f"Missing key: {key}")
    return d[key]


def default_fee_policy() -> FeePolicy:
    policy = FeePolicy(
        tiers=tuple(CommissionTier(upper_bound=b, rate_percent=r) for b, r in R.COMMISSION_TIERS),
        fixed_fee=R.DEFAULT_FIXED_FEE_GBP,
        ancillary_fee=R.ANCILLARY_FEE_GBP,
        legacy_buyer_pays_fee_listing_ids=frozenset(R.LEGACY_BUYER_PAYS_FEE_LISTING_IDS),
        max_sale_price=R.MAX_SALE_PRICE_GBP,
    )
    validate_fee_policy(policy)
    return policy


def _parse_tier(it: Any) -> CommissionTier:
    if not isinstance(it, dict):
        raise FeePolicyError(f"tier entry must be a mapping, got={it!r}")
    # up_to 키가 없으면 open-ended 구간
    bound = it.get("up_to")
    return CommissionTier(
        upper_bound=int(bound) if bound is not None else None,
        rate_percent=float(_deep_get(it, "rate")),
    )


def load_fee_policy_yaml(path: str) -> FeePolicy:
    """
    YAML 예시:

        commission_tiers:
          - {up_to: 499, rate: 12}
          - {up_to: 999, rate: 10}
          - {rate: 5}
        fixed_fee: 0
        ancillary_fee: 0
        legacy_buyer_pays_fee_listing_ids: []
        max_sale_price: 1000000
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Fee policy YAML not found: {p}")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise FeePolicyError("fee policy YAML must be a mapping")

    tiers_raw = _deep_get(raw, "commission_tiers")
    if not isinstance(tiers_raw, list):
        raise FeePolicyError("commission_tiers must be a list")

    policy = FeePolicy(
        tiers=tuple(_parse_tier(it) for it in tiers_raw),
        fixed_fee=int(raw.get("fixed_fee") or 0),
        ancillary_fee=int(raw.get("ancillary_fee") or 0),
        legacy_buyer_pays_fee_listing_ids=frozenset(
            str(x) for x in (raw.get("legacy_buyer_pays_fee_listing_ids") or [])
        ),
        max_sale_price=int(raw.get("max_sale_price") or R.MAX_SALE_PRICE_GBP),
    )
    validate_fee_policy(policy)
    return policy


def get_fee_policy() -> FeePolicy:
    """프로세스 단위 캐시. FEE_POLICY_YAML_PATH 가 있으면 YAML, 없으면 기본값."""
    global _CACHE
    if _CACHE is None:
        path = env.FEE_POLICY_YAML_PATH
        if path:
            _CACHE = load_fee_policy_yaml(path)
            logger.info("fee policy loaded from %s (%d tiers)", path, len(_CACHE.tiers))
        else:
            _CACHE = default_fee_policy()
    return _CACHE


def reset_fee_policy_cache() -> None:
    global _CACHE
    _CACHE = None
