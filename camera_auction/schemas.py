# camera_auction/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, EmailStr


# ─────────────────────────────────────────────────────────
# 공통 ORM 베이스 (store 문서 dict / ORM 객체 둘 다 검증 가능)
# ─────────────────────────────────────────────────────────
class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------- Auth ----------------
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: Optional[str] = None


class UserOut(ORMModel):
    id: str
    email: EmailStr
    name: Optional[str] = None
    email_verified: bool = False


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AccountDeletedOut(BaseModel):
    ok: bool = True
    anonymised_listings: int = 0


class PaymentMethodIn(BaseModel):
    customer_ref: str = Field(..., min_length=1)
    payment_method_ref: str = Field(..., min_length=1)


# ---------------- Listing ----------------
class ListingBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    brand: Optional[str] = None
    model: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    starting_price: Optional[int] = Field(None, ge=0)
    reserve_price: Optional[int] = Field(None, ge=0)
    buy_now_price: Optional[int] = Field(None, ge=0)
    relist_until_sold: bool = False


class ListingCreate(ListingBase):
    pass


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    brand: Optional[str] = None
    model: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    starting_price: Optional[int] = Field(None, ge=0)
    reserve_price: Optional[int] = Field(None, ge=0)
    buy_now_price: Optional[int] = Field(None, ge=0)
    relist_until_sold: Optional[bool] = None


class ListingOut(ORMModel):
    id: str
    seller_email: str
    seller_name: Optional[str] = None
    title: str
    brand: Optional[str] = None
    model: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    description: Optional[str] = None
    starting_price: Optional[int] = None
    reserve_price: Optional[int] = None
    buy_now_price: Optional[int] = None
    current_bid: Optional[int] = None
    bid_count: int = 0
    status: str
    auction_start: Optional[datetime] = None
    auction_end: Optional[datetime] = None
    relist_until_sold: bool = False
    relist_count: int = 0
    sale_status: Optional[str] = None
    sold_price: Optional[int] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ApproveIn(BaseModel):
    starting_price: Optional[int] = Field(None, ge=0)
    reserve_price: Optional[int] = Field(None, ge=0)
    buy_now_price: Optional[int] = Field(None, ge=0)
    relist_until_sold: Optional[bool] = None


class ReasonIn(BaseModel):
    reason: str = Field(..., max_length=2000)


class MarkSoldIn(BaseModel):
    buyer_email: EmailStr
    sale_price: int = Field(..., gt=0)


# ---------------- Bid ----------------
class BidIn(BaseModel):
    listing_id: str
    amount: int = Field(..., gt=0)


class BidRecordOut(ORMModel):
    id: str
    listing_id: str
    bidder_email: str
    amount: int
    created_at: Optional[datetime] = None


class BidOut(BaseModel):
    listing: ListingOut
    bid: BidRecordOut
    minimum_next_bid: int


# ---------------- Buy now ----------------
class BuyNowIn(BaseModel):
    listing_id: str
    payment_intent_id: Optional[str] = None
    delivery_name: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_postcode: Optional[str] = Field(None, max_length=16)


# ---------------- Transaction ----------------
class TransactionOut(ORMModel):
    id: str
    listing_id: str
    listing_title: Optional[str] = None
    sale_channel: Optional[str] = None
    seller_email: str
    buyer_email: str
    sale_price: int
    commission_rate: float
    commission_amount: int
    fixed_fee: int = 0
    ancillary_fee: int = 0
    ancillary_fee_payer: Optional[str] = None
    seller_payout: int
    payment_status: str
    transaction_status: str
    charge_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    seller_dispatch_status: Optional[str] = None
    dispatch_carrier: Optional[str] = None
    dispatch_tracking: Optional[str] = None
    dispatched_at: Optional[datetime] = None
    buyer_receipt_status: Optional[str] = None
    received_at: Optional[datetime] = None
    payout_status: Optional[str] = None
    archived: bool = False
    archived_reason: Optional[str] = None
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TransactionListOut(BaseModel):
    purchases: List[TransactionOut]
    sales: List[TransactionOut]


class DispatchIn(BaseModel):
    carrier: Optional[str] = Field(None, max_length=100)
    tracking: Optional[str] = Field(None, max_length=200)


class ChargeOut(BaseModel):
    transaction: TransactionOut
    already_paid: bool = False
    charge_status: Optional[str] = None


# ---------------- Auction window / scheduler ----------------
class WindowOut(BaseModel):
    timezone: str
    now: datetime
    current_start: datetime
    current_end: datetime
    next_start: datetime
    next_end: datetime
    is_live: bool
    is_coming: bool


class SettlementOut(BaseModel):
    sale_price: int
    commission_rate: float
    commission_amount: int
    fixed_fee_applied: int
    ancillary_fee: int
    ancillary_fee_payer: Optional[str] = None
    seller_payout: int


class CycleOut(BaseModel):
    promoted: List[str]
    completed: List[str]
    relisted: List[str]
    not_sold: List[str]
    charged: List[str]
    charge_failed: List[str]


class RolloverOut(BaseModel):
    moved: List[str]
    auction_start: datetime
    auction_end: datetime


# ---------------- Contact ----------------
class ContactIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    message: str = Field(..., min_length=1, max_length=5000)
