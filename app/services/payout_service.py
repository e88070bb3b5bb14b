import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Session, func, select

from app.constants.order_status import PAYMENT_COMPLETED
from app.models.author_earning import AuthorEarning
from app.models.book import Book
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.user import User
from app.utils.money import quantize, to_decimal, to_money

logger = logging.getLogger(__name__)


def _completed_earnings(author_id: Optional[int] = None):
    query = (
        select(AuthorEarning)
        .join(Order, Order.id == AuthorEarning.order_id)
        .where(Order.payment_status == PAYMENT_COMPLETED)
    )
    if author_id is not None:
        query = query.where(AuthorEarning.author_id == author_id)
    return query


def author_earnings_totals(session: Session, author: User) -> dict:
    rows = session.exec(_completed_earnings(author.id)).all()

    total = sum((to_decimal(r.amount) for r in rows), Decimal("0"))
    unpaid = sum((to_decimal(r.amount) for r in rows if not r.paid_out), Decimal("0"))

    sold_lines = session.exec(
        select(func.count(OrderItem.id))
        .join(Order, Order.id == OrderItem.order_id)
        .join(Book, Book.id == OrderItem.book_id)
        .where(Book.author_id == author.id, Order.payment_status == PAYMENT_COMPLETED)
    ).one()

    return {
        "total_sales": sold_lines,
        "total_earnings": to_money(total),
        "unpaid_earnings": to_money(unpaid),
    }


def unpaid_earnings_by_author(session: Session) -> List[dict]:
    rows = session.exec(
        _completed_earnings().where(AuthorEarning.paid_out == False)  # noqa: E712
    ).all()

    totals = {}
    for row in rows:
        totals[row.author_id] = totals.get(row.author_id, Decimal("0")) + to_decimal(row.amount)

    payouts = []
    for author_id, amount in totals.items():
        author = session.get(User, author_id)
        payouts.append({
            "author": {
                "id": author_id,
                "name": author.name if author else None,
                "email": author.email if author else None,
                "payout_paypal_email": (author.payout_paypal_email or "") if author else "",
            },
            "unpaid_earnings": to_money(amount),
        })
    return payouts


def mark_earnings_paid_out(
    session: Session,
    author_id: int,
    amount,
    now: Optional[datetime] = None,
) -> dict:
    """
    Flag the author's oldest unpaid earnings as paid out, without going over
    ``amount``. Rows that would overshoot are skipped.
    """
    now = now or datetime.utcnow()
    budget = quantize(amount)

    rows = session.exec(
        _completed_earnings(author_id)
        .where(AuthorEarning.paid_out == False)  # noqa: E712
        .order_by(Order.created_at, AuthorEarning.id)
    ).all()

    marked = 0
    total = Decimal("0")
    for row in rows:
        row_amount = quantize(row.amount)
        if total + row_amount > budget:
            continue
        row.paid_out = True
        row.paid_out_at = now
        session.add(row)
        total += row_amount
        marked += 1

    session.commit()
    logger.info(f"Marked {marked} earning row(s) paid out for author {author_id}: {total}")

    return {"marked_count": marked, "total_marked": to_money(total)}


def platform_earnings_total(session: Session) -> dict:
    orders = session.exec(
        select(Order).where(Order.payment_status == PAYMENT_COMPLETED)
    ).all()
    total = sum((to_decimal(o.platform_earnings) for o in orders), Decimal("0"))
    return {"total_earnings": to_money(total), "total_orders": len(orders)}
