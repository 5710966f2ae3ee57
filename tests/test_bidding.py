# tests/test_bidding.py
from datetime import timedelta

import pytest

from camera_auction.core.bidding import (
    bid_increment,
    minimum_next_bid,
    reserve_met,
    soft_close_end,
    validate_listing_prices,
)
from camera_auction.errors import Forbidden, InvalidStateTransition, ValidationFailed
from camera_auction.logic.bids import place_bid

from conftest import utc


@pytest.mark.parametrize(
    "amount, step",
    [(0, 5), (99, 5), (100, 10), (499, 10), (500, 25), (1000, 50), (4999, 50), (9999, 100), (10000, 250), (60000, 1000)],
)
def test_bid_increment(amount, step):
    assert bid_increment(amount) == step


def test_minimum_next_bid():
    assert minimum_next_bid(None, 100) == 110
    assert minimum_next_bid(250, 100) == 260
    assert minimum_next_bid(None, None) == 5


def test_soft_close():
    end = utc(2024, 1, 14, 23)
    assert soft_close_end(end - timedelta(minutes=3), end) == end + timedelta(minutes=2)
    assert soft_close_end(end - timedelta(minutes=10), end) == end
    assert soft_close_end(end - timedelta(minutes=5), end) == end


def test_reserve_met():
    assert reserve_met(300, 250) is True
    assert reserve_met(250, 250) is True
    assert reserve_met(200, 250) is False
    assert reserve_met(None, 250) is False
    assert reserve_met(10, None) is True


def test_listing_price_rules():
    validate_listing_prices(100, 100, None)
    validate_listing_prices(100, 200, 200)
    validate_listing_prices(None, None, 50)
    with pytest.raises(ValidationFailed):
        validate_listing_prices(200, 100, None)
    with pytest.raises(ValidationFailed):
        validate_listing_prices(100, 200, 150)
    with pytest.raises(ValidationFailed):
        validate_listing_prices(-1, None, None)


# -------------------------------------------------------
# place_bid
# -------------------------------------------------------
NOW = utc(2024, 1, 10, 12)


def _live(make_listing, **kw):
    fields = dict(status="live", auction_start=utc(2024, 1, 8, 1), auction_end=utc(2024, 1, 14, 23))
    fields.update(kw)
    return make_listing(**fields)


def test_place_bid_updates_listing_and_records_bid(store, make_listing):
    listing = _live(make_listing)

    updated, bid = place_bid(store, listing["id"], bidder_email="Buyer@Example.com", amount=110, now=NOW)

    assert updated["current_bid"] == 110
    assert updated["bid_count"] == 1
    assert updated["highest_bidder_email"] == "buyer@example.com"
    assert updated["auction_end"] == utc(2024, 1, 14, 23)
    assert bid["amount"] == 110
    assert store.list_documents("bids", {"listing_id": listing["id"]})[0]["bidder_email"] == "buyer@example.com"


def test_place_bid_rules(store, make_listing):
    listing = _live(make_listing)

    with pytest.raises(ValidationFailed):
        place_bid(store, listing["id"], bidder_email="buyer@example.com", amount=105, now=NOW)
    with pytest.raises(Forbidden):
        place_bid(store, listing["id"], bidder_email="seller@example.com", amount=500, now=NOW)
    with pytest.raises(InvalidStateTransition):
        place_bid(store, listing["id"], bidder_email="buyer@example.com", amount=500, now=utc(2024, 1, 15))

    queued = make_listing(status="queued", auction_start=utc(2024, 1, 15, 1), auction_end=utc(2024, 1, 21, 23))
    with pytest.raises(InvalidStateTransition):
        place_bid(store, queued["id"], bidder_email="buyer@example.com", amount=500, now=NOW)


def test_place_bid_soft_close_extends_end(store, make_listing):
    end = utc(2024, 1, 14, 23)
    listing = _live(make_listing, auction_end=end)
    now = end - timedelta(minutes=2)

    updated, _ = place_bid(store, listing["id"], bidder_email="buyer@example.com", amount=200, now=now)
    assert updated["auction_end"] == now + timedelta(minutes=5)


def test_outbid_requires_increment_over_current(store, make_listing):
    listing = _live(make_listing)
    place_bid(store, listing["id"], bidder_email="a@example.com", amount=300, now=NOW)

    with pytest.raises(ValidationFailed):
        place_bid(store, listing["id"], bidder_email="b@example.com", amount=305, now=NOW)
    updated, _ = place_bid(store, listing["id"], bidder_email="b@example.com", amount=310, now=NOW)
    assert updated["highest_bidder_email"] == "b@example.com"
    assert updated["bid_count"] == 2
