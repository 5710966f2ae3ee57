"""initial auction tables

Revision ID: 20260105_initial
Revises:
Create Date: 2026-01-05 10:12:04.318220
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20260105_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# ---------- helpers ----------
def _has_table(name: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    return insp.has_table(name)


def upgrade() -> None:
    # create_all 로 이미 만들어진 DB 에도 stamp 없이 올릴 수 있게 존재 여부 확인
    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("hashed_password", sa.String(), nullable=False),
            sa.Column("name", sa.String()),
            sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("stripe_customer_id", sa.String()),
            sa.Column("default_payment_method_id", sa.String()),
            sa.Column("created_at", sa.DateTime()),
            sa.Column("updated_at", sa.DateTime()),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if not _has_table("listings"):
        op.create_table(
            "listings",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("seller_email", sa.String(), nullable=False),
            sa.Column("seller_name", sa.String()),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("brand", sa.String()),
            sa.Column("model", sa.String()),
            sa.Column("category", sa.String()),
            sa.Column("condition", sa.String()),
            sa.Column("description", sa.Text()),
            sa.Column("starting_price", sa.Integer()),
            sa.Column("reserve_price", sa.Integer()),
            sa.Column("buy_now_price", sa.Integer()),
            sa.Column("current_bid", sa.Integer()),
            sa.Column("bid_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("highest_bidder_email", sa.String()),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending_approval"),
            sa.Column("auction_start", sa.DateTime()),
            sa.Column("auction_end", sa.DateTime()),
            sa.Column("relist_until_sold", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("relist_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("sale_status", sa.String(length=32)),
            sa.Column("sold_price", sa.Integer()),
            sa.Column("buyer_email", sa.String()),
            sa.Column("rejection_reason", sa.Text()),
            sa.Column("approved_at", sa.DateTime()),
            sa.Column("sold_at", sa.DateTime()),
            sa.Column("created_at", sa.DateTime()),
            sa.Column("updated_at", sa.DateTime()),
        )
        op.create_index("ix_listings_seller_email", "listings", ["seller_email"])
        op.create_index("ix_listings_status", "listings", ["status"])
        op.create_index("ix_listing_status_start", "listings", ["status", "auction_start"])
        op.create_index("ix_listing_status_end", "listings", ["status", "auction_end"])

    if not _has_table("bids"):
        op.create_table(
            "bids",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("listing_id", sa.String(length=36), sa.ForeignKey("listings.id"), nullable=False),
            sa.Column("bidder_email", sa.String(), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime()),
        )
        op.create_index("ix_bids_listing_id", "bids", ["listing_id"])
        op.create_index("ix_bids_bidder_email", "bids", ["bidder_email"])
        op.create_index("ix_bids_created_at", "bids", ["created_at"])

    if not _has_table("transactions"):
        op.create_table(
            "transactions",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("listing_id", sa.String(length=36), nullable=False),
            sa.Column("listing_title", sa.String()),
            sa.Column("sale_channel", sa.String(length=16)),
            sa.Column("seller_email", sa.String(), nullable=False),
            sa.Column("buyer_email", sa.String(), nullable=False),
            sa.Column("sale_price", sa.Integer(), nullable=False),
            sa.Column("commission_rate", sa.Float(), nullable=False),
            sa.Column("commission_amount", sa.Integer(), nullable=False),
            sa.Column("fixed_fee", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("ancillary_fee", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("ancillary_fee_payer", sa.String(length=8)),
            sa.Column("seller_payout", sa.Integer(), nullable=False),
            sa.Column("payment_status", sa.String(length=16), nullable=False, server_default="unpaid"),
            sa.Column("transaction_status", sa.String(length=32), nullable=False, server_default="unpaid"),
            sa.Column("charge_id", sa.String()),
            sa.Column("payment_error", sa.Text()),
            sa.Column("paid_at", sa.DateTime()),
            sa.Column("seller_dispatch_status", sa.String(length=16)),
            sa.Column("dispatch_carrier", sa.String()),
            sa.Column("dispatch_tracking", sa.String()),
            sa.Column("dispatched_at", sa.DateTime()),
            sa.Column("buyer_receipt_status", sa.String(length=16)),
            sa.Column("received_at", sa.DateTime()),
            sa.Column("payout_status", sa.String(length=16)),
            sa.Column("delivery_name", sa.String()),
            sa.Column("delivery_address", sa.Text()),
            sa.Column("delivery_postcode", sa.String(length=16)),
            sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("archived_reason", sa.Text()),
            sa.Column("archived_at", sa.DateTime()),
            sa.Column("archived_by", sa.String()),
            sa.Column("deleted_at", sa.DateTime()),
            sa.Column("created_at", sa.DateTime()),
            sa.Column("updated_at", sa.DateTime()),
        )
        op.create_index("ix_transactions_listing_id", "transactions", ["listing_id"])
        op.create_index("ix_transactions_seller_email", "transactions", ["seller_email"])
        op.create_index("ix_transactions_buyer_email", "transactions", ["buyer_email"])
        op.create_index("ix_transactions_payment_status", "transactions", ["payment_status"])
        op.create_index("ix_transactions_transaction_status", "transactions", ["transaction_status"])
        op.create_index("ix_transactions_charge_id", "transactions", ["charge_id"])


def downgrade() -> None:
    for name in ("transactions", "bids", "listings", "users"):
        if _has_table(name):
            op.drop_table(name)
