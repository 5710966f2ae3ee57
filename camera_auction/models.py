# camera_auction/models.py
# 컬렉션(=테이블) 정의. store.SqlDocumentStore 가 이 컬럼 목록을 "스키마"로 본다.
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, DateTime, Float, ForeignKey, Text, Boolean, Index,
)
from sqlalchemy.orm import relationship

from .database import Base


def new_id() -> str:
    # 20자 문서 id (외부 BaaS 문서 id 와 같은 길이)
    return uuid.uuid4().hex[:20]


def _utcnow() -> datetime:
    # DB 에는 naive UTC 로 저장 (SQLite 호환)
    return datetime.now(timezone.utc).replace(tzinfo=None)


# -------------------------------------------------------
# 🧩 User (로컬 계정 + 결제수단 참조)
# -------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # 결제 프로세서 쪽 고객/기본 결제수단 (낙찰 자동결제용)
    stripe_customer_id = Column(String, nullable=True)
    default_payment_method_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<User(email='{self.email}', active={self.is_active})>"


# -------------------------------------------------------
# 📷 Listing
# -------------------------------------------------------
class Listing(Base):
    __tablename__ = "listings"

    id = Column(String(36), primary_key=True, default=new_id)
    seller_email = Column(String, index=True, nullable=False)
    seller_name = Column(String, nullable=True)

    title = Column(String, nullable=False)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    category = Column(String, nullable=True)
    condition = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    # 가격 (파운드 정수)
    starting_price = Column(Integer, nullable=True)
    reserve_price = Column(Integer, nullable=True)
    buy_now_price = Column(Integer, nullable=True)

    current_bid = Column(Integer, nullable=True)
    bid_count = Column(Integer, default=0, nullable=False)
    highest_bidder_email = Column(String, nullable=True)

    # pending_approval / queued / live / completed / sold / not_sold / withdrawn / rejected
    status = Column(String(32), default="pending_approval", nullable=False, index=True)
    auction_start = Column(DateTime, nullable=True)
    auction_end = Column(DateTime, nullable=True)
    relist_until_sold = Column(Boolean, default=False, nullable=False)
    relist_count = Column(Integer, default=0, nullable=False)

    sale_status = Column(String(32), nullable=True)   # sold_auction / sold_buy_now / sold_manual
    sold_price = Column(Integer, nullable=True)
    buyer_email = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    approved_at = Column(DateTime, nullable=True)
    sold_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, nullable=True)

    bids = relationship("Bid", back_populates="listing")

    __table_args__ = (
        Index("ix_listing_status_start", "status", "auction_start"),
        Index("ix_listing_status_end", "status", "auction_end"),
    )


class Bid(Base):
    __tablename__ = "bids"

    id = Column(String(36), primary_key=True, default=new_id)
    listing_id = Column(String(36), ForeignKey("listings.id"), index=True, nullable=False)
    bidder_email = Column(String, index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, index=True)

    listing = relationship("Listing", back_populates="bids")


# -------------------------------------------------------
# 💷 Transaction (판매 1건 = 1행)
# -------------------------------------------------------
class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    listing_id = Column(String(36), index=True, nullable=False)
    listing_title = Column(String, nullable=True)
    sale_channel = Column(String(16), nullable=True)  # auction / buy_now / manual

    seller_email = Column(String, index=True, nullable=False)
    buyer_email = Column(String, index=True, nullable=False)

    # 정산 스냅샷 (파운드 정수)
    sale_price = Column(Integer, nullable=False)
    commission_rate = Column(Float, nullable=False)
    commission_amount = Column(Integer, nullable=False)
    fixed_fee = Column(Integer, default=0, nullable=False)
    ancillary_fee = Column(Integer, default=0, nullable=False)
    ancillary_fee_payer = Column(String(8), nullable=True)
    seller_payout = Column(Integer, nullable=False)

    # 결제
    payment_status = Column(String(16), default="unpaid", nullable=False, index=True)
    transaction_status = Column(String(32), default="unpaid", nullable=False, index=True)
    charge_id = Column(String, index=True, nullable=True)
    payment_error = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # 발송
    seller_dispatch_status = Column(String(16), nullable=True)
    dispatch_carrier = Column(String, nullable=True)
    dispatch_tracking = Column(String, nullable=True)
    dispatched_at = Column(DateTime, nullable=True)

    # 수령
    buyer_receipt_status = Column(String(16), nullable=True)
    received_at = Column(DateTime, nullable=True)
    payout_status = Column(String(16), nullable=True)

    # 배송지 스냅샷
    delivery_name = Column(String, nullable=True)
    delivery_address = Column(Text, nullable=True)
    delivery_postcode = Column(String(16), nullable=True)

    # 관리자 보관/삭제
    archived = Column(Boolean, default=False, nullable=False)
    archived_reason = Column(Text, nullable=True)
    archived_at = Column(DateTime, nullable=True)
    archived_by = Column(String, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, nullable=True)
