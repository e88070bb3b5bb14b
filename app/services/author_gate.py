import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from app.constants.order_status import BOOK_APPROVED, BOOK_PENDING, ROLE_AUTHOR
from app.exceptions import AuthorizationError, NotFoundError
from app.models.book import Book
from app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Unpaid platform fee"


def has_payout_destination(author: User) -> bool:
    return bool(author.payout_paypal_email and author.payout_paypal_email.strip())


def initial_book_status(author: User) -> str:
    return BOOK_APPROVED if has_payout_destination(author) else BOOK_PENDING


def reconcile_book_visibility(session: Session, author: User) -> int:
    """
    Make book status follow the author's payout configuration.

    With a PayPal payout address every pending book goes live; without one
    every approved book drops back to pending. Rejected and deleted books are
    left alone. Safe to call any number of times.
    """
    if has_payout_destination(author):
        source, target = BOOK_PENDING, BOOK_APPROVED
    else:
        source, target = BOOK_APPROVED, BOOK_PENDING

    result = session.execute(
        update(Book)
        .where(
            Book.author_id == author.id,
            Book.is_deleted == False,  # noqa: E712
            Book.status == source,
        )
        .values(status=target, updated_at=datetime.utcnow())
    )
    session.commit()

    changed = result.rowcount or 0
    if changed:
        logger.info(f"Author {author.id}: {changed} book(s) moved {source} -> {target}")
    return changed


def ensure_can_publish(author: User) -> None:
    if author.is_blocked:
        raise AuthorizationError(
            "Publishing is disabled for this account",
            reason=author.blocked_reason,
        )


def get_author(session: Session, author_id: int) -> User:
    author = session.get(User, author_id)
    if not author or author.role != ROLE_AUTHOR:
        raise NotFoundError("Author not found")
    return author


def block_author(
    session: Session,
    author: User,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    author.is_blocked = True
    author.blocked_reason = reason or DEFAULT_BLOCK_REASON
    author.blocked_at = now or datetime.utcnow()
    session.add(author)
    session.commit()
    session.refresh(author)

    logger.info(f"Author {author.id} blocked: {author.blocked_reason}")
    return author


def unblock_author(session: Session, author: User) -> User:
    author.is_blocked = False
    author.blocked_reason = None
    author.blocked_at = None
    session.add(author)
    session.commit()
    session.refresh(author)

    logger.info(f"Author {author.id} unblocked")
    return author


def visible_books_query():
    """Books the public catalog may show."""
    return (
        select(Book)
        .join(User, User.id == Book.author_id)
        .where(
            Book.is_deleted == False,  # noqa: E712
            Book.status == BOOK_APPROVED,
            User.is_blocked == False,  # noqa: E712
        )
    )


def serialize_author(author: User) -> dict:
    return {
        "id": author.id,
        "name": author.name,
        "email": author.email,
        "payout_paypal_email": author.payout_paypal_email,
        "is_blocked": author.is_blocked,
        "blocked_reason": author.blocked_reason,
        "blocked_at": author.blocked_at,
        "created_at": author.created_at,
    }
