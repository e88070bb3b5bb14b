import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.constants.order_status import PAYMENT_COMPLETED, ROLE_ADMIN
from app.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.author_earning import AuthorEarning
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.user import User
from app.services.pricing_service import price_cart
from app.utils.file_urls import to_full_url
from app.utils.money import quantize, to_money, to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def split_earnings(pricing, total: Decimal, fee_percentage) -> dict:
    """
    Split ``total`` (what the customer paid) between authors.

    Each line earns its share of the pre-discount cart total applied to the
    discounted total, less the platform fee. Returns
    ``{"lines": [...], "authors": {author_id: net}}`` in full precision.
    """
    fee_rate = to_decimal(fee_percentage) / HUNDRED
    original_total = pricing.original_total

    lines = []
    authors = OrderedDict()
    for item in pricing.items:
        share = item.original_price / original_total if original_total else Decimal("0")
        line_paid = share * total
        author_net = line_paid * (1 - fee_rate)

        lines.append((item, line_paid))
        author_id = item.book.author_id
        authors[author_id] = authors.get(author_id, Decimal("0")) + author_net

    return {"lines": lines, "authors": authors}


class OrderLedger:
    def __init__(
        self,
        session: Session,
        gateway,
        fee_percentage: float,
        payouts_direct_to_authors: bool = False,
    ):
        self.session = session
        self.gateway = gateway
        self.fee_percentage = fee_percentage
        self.payouts_direct_to_authors = payouts_direct_to_authors

    def create_order(
        self,
        customer: User,
        book_ids: Sequence[int],
        payment_id: str,
        coupon_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        if not book_ids:
            raise ValidationError("Cart is empty")
        if not payment_id:
            raise ValidationError("Payment ID is required")

        # Idempotent retry of the same payment, answered before re-pricing
        existing = self._recorded_order(customer, payment_id)
        if existing:
            return existing

        pricing = price_cart(self.session, book_ids, coupon_code, now)

        if pricing.missing_book_ids:
            raise ValidationError(
                "Some books are not available",
                missing_book_ids=pricing.missing_book_ids,
            )

        total = quantize(pricing.total)
        if total <= 0:
            raise ValidationError("Invalid amount")

        # Raises on any mismatch, timeout or processor error; nothing written yet
        self.gateway.verify_order(payment_id, total)

        split = split_earnings(pricing, total, self.fee_percentage)

        breakdown = [
            AuthorEarning(
                author_id=author_id,
                amount=to_money(net),
                paid_out=self.payouts_direct_to_authors,
                paid_out_at=(now or datetime.utcnow()) if self.payouts_direct_to_authors else None,
            )
            for author_id, net in split["authors"].items()
        ]
        author_earnings = sum((quantize(row.amount) for row in breakdown), Decimal("0"))
        platform_earnings = total - author_earnings

        order = Order(
            customer_id=customer.id,
            total_amount=float(total),
            platform_earnings=float(platform_earnings),
            author_earnings=float(author_earnings),
            payment_id=payment_id,
            payment_status=PAYMENT_COMPLETED,
            discount_code=pricing.discount_code,
            discount_percentage=pricing.discount_percentage,
            discount_amount=to_money(pricing.discount_amount),
            created_at=now or datetime.utcnow(),
        )
        order.items = [
            OrderItem(
                book_id=item.book.id,
                book_title=item.book.title,
                price=to_money(item.original_price),
                price_paid=to_money(line_paid),
            )
            for item, line_paid in split["lines"]
        ]
        order.earnings = breakdown

        for item in pricing.items:
            item.book.sales_count = (item.book.sales_count or 0) + 1
            self.session.add(item.book)

        self.session.add(order)
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent request recorded this payment first
            self.session.rollback()
            existing = self._recorded_order(customer, payment_id)
            if existing is None:
                raise
            return existing
        self.session.refresh(order)

        logger.info(
            f"Order {order.id} created for customer {customer.id}: "
            f"total={order.total_amount} platform={order.platform_earnings} "
            f"authors={order.author_earnings}"
        )
        return order

    def _recorded_order(self, customer: User, payment_id: str) -> Optional[Order]:
        existing = self.session.exec(
            select(Order).where(Order.payment_id == payment_id)
        ).first()
        if existing is None:
            return None
        if existing.customer_id != customer.id:
            raise ValidationError("Payment already used for another order")
        logger.info(f"Order {existing.id} already recorded for payment {payment_id}")
        return existing

    # -------- queries --------

    def list_customer_orders(self, customer: User) -> List[Order]:
        return self.session.exec(
            select(Order)
            .where(Order.customer_id == customer.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        ).all()

    def list_all_orders(self) -> List[Order]:
        return self.session.exec(
            select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        ).all()

    def get_order_for_user(self, order_id: int, user: User) -> Order:
        order = self.session.get(Order, order_id)
        if not order:
            raise NotFoundError("Order not found")

        if user.role != ROLE_ADMIN and order.customer_id != user.id:
            raise AuthorizationError("Access denied")
        return order


def has_purchased(session: Session, customer_id: int, book_id: int) -> bool:
    """The access check for paid content: a completed order containing the book."""
    found = session.exec(
        select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.customer_id == customer_id,
            Order.payment_status == PAYMENT_COMPLETED,
            OrderItem.book_id == book_id,
        )
    ).first()
    return found is not None


def serialize_book_ref(book) -> Optional[dict]:
    if book is None:
        return None
    return {
        "id": book.id,
        "title": book.title,
        "author_id": book.author_id,
        "author_name": book.author.name if book.author else None,
        "cover_image": to_full_url(book.cover_image),
        "pdf_file": to_full_url(book.pdf_file),
        "is_deleted": book.is_deleted,
    }


def serialize_order(order: Order) -> dict:
    customer = order.customer
    return {
        "id": order.id,
        "customer": (
            {"id": customer.id, "name": customer.name, "email": customer.email}
            if customer
            else None
        ),
        # Lines for soft-deleted books stay so buyers keep their downloads
        "items": [
            {
                "book": serialize_book_ref(item.book),
                "book_title": item.book_title,
                "price": item.price,
                "price_paid": item.price_paid,
            }
            for item in order.items
        ],
        "total_amount": order.total_amount,
        "platform_earnings": order.platform_earnings,
        "author_earnings": order.author_earnings,
        "author_earnings_breakdown": [
            {
                "author_id": row.author_id,
                "amount": row.amount,
                "paid_out": row.paid_out,
                "paid_out_at": row.paid_out_at,
            }
            for row in order.earnings
        ],
        "payment_id": order.payment_id,
        "payment_status": order.payment_status,
        "discount_code": order.discount_code,
        "discount_percentage": order.discount_percentage,
        "discount_amount": order.discount_amount,
        "created_at": order.created_at,
    }
