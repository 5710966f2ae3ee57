# camera_auction/core/bidding.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from camera_auction.config import project_rules as R
from camera_auction.errors import ValidationFailed


def bid_increment(amount: int) -> int:
    for upper, step in R.BID_INCREMENT_TABLE:
        if upper is None or amount < upper:
            return step
    return R.BID_INCREMENT_TABLE[-1][1]


def minimum_next_bid(current_bid: Optional[int], starting_price: Optional[int]) -> int:
    """최소 입찰가 = (현재 최고가 또는 시작가) + 증가폭."""
    base = int(current_bid or starting_price or 0)
    return base + bid_increment(base)


def soft_close_end(now: datetime, auction_end: datetime) -> datetime:
    """마감 SOFT_CLOSE_MINUTES 이내 입찰이면 now + SOFT_CLOSE_MINUTES 로 연장."""
    window = timedelta(minutes=R.SOFT_CLOSE_MINUTES)
    if auction_end - now <= window:
        return now + window
    return auction_end


def reserve_met(current_bid: Optional[int], reserve_price: Optional[int]) -> bool:
    if not current_bid:
        return False
    if not reserve_price:
        return True
    return current_bid >= reserve_price


def validate_listing_prices(
    starting_price: Optional[int],
    reserve_price: Optional[int],
    buy_now_price: Optional[int],
) -> None:
    """
    - 시작가/최저낙찰가 둘 다 있으면 시작가 ≤ 최저낙찰가
    - 즉시구매가가 있으면 max(최저낙찰가, 시작가) 이상
    """
    starting = int(starting_price or 0)
    reserve = int(reserve_price or 0)
    buy_now = int(buy_now_price or 0)

    for name, v in (("starting_price", starting), ("reserve_price", reserve), ("buy_now_price", buy_now)):
        if v < 0:
            raise ValidationFailed(f"{name} must be >=0, got={v}")

    if starting > 0 and reserve > 0 and starting > reserve:
        raise ValidationFailed("Starting price must not exceed the reserve price.")
    if buy_now > 0 and buy_now < max(reserve, starting):
        raise ValidationFailed("Buy now price must be at least the reserve and starting price.")
