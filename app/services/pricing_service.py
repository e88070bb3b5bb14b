"""
Cart pricing: the single source of truth for totals, coupon validation and
per-item discounted prices. Coupon preview, PayPal order creation and order
persistence all price through ``price_cart`` so their totals always agree.

Amounts stay in full ``Decimal`` precision here; rounding happens once, in
``CartPricing.as_response`` or wherever an amount leaves the system.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from app.models.book import Book
from app.models.coupon import Coupon
from app.services.coupon_service import (
    ensure_scope_applicable,
    get_coupon_by_code,
    is_eligible,
    validate_coupon_state,
)
from app.utils.money import to_decimal, to_money

HUNDRED = Decimal("100")
ZERO = Decimal("0")


@dataclass
class PricedItem:
    book: Book
    original_price: Decimal
    discounted_price: Decimal
    is_discounted: bool

    @property
    def book_id(self) -> int:
        return self.book.id

    @property
    def discount_amount(self) -> Decimal:
        return self.original_price - self.discounted_price


@dataclass
class CartPricing:
    items: List[PricedItem] = field(default_factory=list)
    coupon: Optional[Coupon] = None
    missing_book_ids: List[int] = field(default_factory=list)

    @property
    def books(self) -> List[Book]:
        return [item.book for item in self.items]

    @property
    def original_total(self) -> Decimal:
        return sum((item.original_price for item in self.items), ZERO)

    @property
    def total(self) -> Decimal:
        return sum((item.discounted_price for item in self.items), ZERO)

    @property
    def discount_amount(self) -> Decimal:
        return self.original_total - self.total

    @property
    def discount_percentage(self) -> Optional[float]:
        return self.coupon.discount_percentage if self.coupon else None

    @property
    def discount_code(self) -> Optional[str]:
        return self.coupon.code if self.coupon else None

    def as_response(self) -> dict:
        coupon = self.coupon
        return {
            "discount_code": self.discount_code,
            "discount_percentage": self.discount_percentage,
            "discount_amount": to_money(self.discount_amount),
            "original_total": to_money(self.original_total),
            "new_total": to_money(self.total),
            "scope": coupon.scope if coupon else None,
            "author": (
                {"id": coupon.author_id, "name": coupon.author.name if coupon.author else ""}
                if coupon and coupon.author_id
                else None
            ),
            "missing_book_ids": self.missing_book_ids,
            "discounted_items": [
                {
                    "book_id": item.book_id,
                    "title": item.book.title,
                    "original_price": to_money(item.original_price),
                    "discounted_price": to_money(item.discounted_price),
                    "discount_amount": to_money(item.discount_amount),
                    "is_discounted": item.is_discounted,
                }
                for item in self.items
            ],
        }


def fetch_cart_books(session: Session, book_ids: Sequence[int]):
    """
    Resolve cart lines in order. Duplicate ids resolve to the same book once
    per line; ids that are unknown or soft-deleted come back as missing.
    """
    unique_ids = set(book_ids)
    if not unique_ids:
        return [], []

    books = session.exec(
        select(Book).where(Book.id.in_(unique_ids), Book.is_deleted == False)  # noqa: E712
    ).all()
    by_id = {book.id: book for book in books}

    lines = []
    missing = []
    for book_id in book_ids:
        book = by_id.get(book_id)
        if book is None:
            missing.append(book_id)
        else:
            lines.append(book)
    return lines, missing


def discounted_price(price: Decimal, percentage) -> Decimal:
    rate = to_decimal(percentage) / HUNDRED
    return max(ZERO, price * (1 - rate))


def price_cart(
    session: Session,
    book_ids: Sequence[int],
    coupon_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CartPricing:
    books, missing = fetch_cart_books(session, list(book_ids or []))

    if not coupon_code:
        return CartPricing(
            items=[
                PricedItem(
                    book=book,
                    original_price=to_decimal(book.price),
                    discounted_price=to_decimal(book.price),
                    is_discounted=False,
                )
                for book in books
            ],
            missing_book_ids=missing,
        )

    coupon = get_coupon_by_code(session, coupon_code)
    validate_coupon_state(coupon, now)
    ensure_scope_applicable(coupon, books)

    items = []
    for book in books:
        original = to_decimal(book.price)
        eligible = is_eligible(coupon, book)
        items.append(
            PricedItem(
                book=book,
                original_price=original,
                discounted_price=(
                    discounted_price(original, coupon.discount_percentage)
                    if eligible
                    else original
                ),
                is_discounted=eligible,
            )
        )

    return CartPricing(items=items, coupon=coupon, missing_book_ids=missing)
