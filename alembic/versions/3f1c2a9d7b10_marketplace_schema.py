"""marketplace schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:44.512031

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="customer"),
        sa.Column("can_login", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("payout_paypal_email", sa.String(), nullable=True),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("blocked_reason", sa.String(), nullable=True),
        sa.Column("blocked_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "book",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("genre", sa.String(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("cover_image", sa.String(), nullable=False),
        sa.Column("pdf_file", sa.String(), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sales_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_book_genre", "book", ["genre"])
    op.create_index("ix_book_author_id", "book", ["author_id"])
    op.create_index("ix_book_is_deleted", "book", ["is_deleted"])
    op.create_index("ix_book_status", "book", ["status"])

    op.create_table(
        "coupon",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("discount_percentage", sa.Float(), nullable=False),
        sa.Column("scope", sa.String(), nullable=False, server_default="all"),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("valid_from", sa.DateTime(), nullable=True),
        sa.Column("valid_to", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_coupon_code", "coupon", ["code"], unique=True)
    op.create_index("ix_coupon_is_active", "coupon", ["is_active"])

    op.create_table(
        "order",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("platform_earnings", sa.Float(), nullable=False),
        sa.Column("author_earnings", sa.Float(), nullable=False),
        sa.Column("payment_id", sa.String(), nullable=False),
        sa.Column("payment_status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("discount_code", sa.String(), nullable=True),
        sa.Column("discount_percentage", sa.Float(), nullable=True),
        sa.Column("discount_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_order_customer_id", "order", ["customer_id"])
    op.create_index("ix_order_payment_id", "order", ["payment_id"], unique=True)
    op.create_index("ix_order_created_at", "order", ["created_at"])

    op.create_table(
        "orderitem",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False),
        sa.Column("book_id", sa.Integer(), sa.ForeignKey("book.id"), nullable=False),
        sa.Column("book_title", sa.String(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("price_paid", sa.Float(), nullable=False),
    )
    op.create_index("ix_orderitem_order_id", "orderitem", ["order_id"])
    op.create_index("ix_orderitem_book_id", "orderitem", ["book_id"])

    op.create_table(
        "author_earning",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("order.id"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("paid_out", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_out_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_author_earning_order_id", "author_earning", ["order_id"])
    op.create_index("ix_author_earning_author_id", "author_earning", ["author_id"])

    op.create_table(
        "platform_fee_status",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("period", sa.String(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("author_id", "period", name="uq_fee_status_author_period"),
    )
    op.create_index("ix_platform_fee_status_author_id", "platform_fee_status", ["author_id"])
    op.create_index("ix_platform_fee_status_period", "platform_fee_status", ["period"])


def downgrade():
    op.drop_table("platform_fee_status")
    op.drop_table("author_earning")
    op.drop_table("orderitem")
    op.drop_table("order")
    op.drop_table("coupon")
    op.drop_table("book")
    op.drop_table("user")
