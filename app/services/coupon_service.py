import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from app.constants.order_status import ROLE_AUTHOR
from app.exceptions import (
    CouponNotApplicableError,
    ExpiredCouponError,
    InactiveCouponError,
    NotFoundError,
    NotYetValidError,
    ValidationError,
)
from app.models.book import Book
from app.models.coupon import Coupon
from app.models.user import User

logger = logging.getLogger(__name__)

SCOPE_ALL = "all"
SCOPE_AUTHOR = "author"


def normalize_code(code: Optional[str]) -> str:
    return str(code or "").strip().upper()


def get_coupon_by_code(session: Session, code: str) -> Coupon:
    normalized = normalize_code(code)
    coupon = None
    if normalized:
        coupon = session.exec(
            select(Coupon).where(Coupon.code == normalized)
        ).first()

    if not coupon:
        raise NotFoundError("Invalid coupon code")
    return coupon


def validate_coupon_state(coupon: Coupon, now: Optional[datetime] = None) -> None:
    """
    Expiry is checked first so an expired coupon always reports as expired,
    whatever its active flag says.
    """
    now = now or datetime.utcnow()

    if coupon.valid_to and now > coupon.valid_to:
        raise ExpiredCouponError("This coupon has expired")

    if coupon.valid_from and now < coupon.valid_from:
        raise NotYetValidError("This coupon is not yet valid")

    if not coupon.is_active:
        raise InactiveCouponError("This coupon is not active")


def is_eligible(coupon: Coupon, book: Book) -> bool:
    if coupon.scope == SCOPE_ALL:
        return True
    return (
        coupon.scope == SCOPE_AUTHOR
        and coupon.author_id is not None
        and book.author_id == coupon.author_id
    )


def ensure_scope_applicable(coupon: Coupon, books: Iterable[Book]) -> None:
    if coupon.scope != SCOPE_AUTHOR:
        return

    if any(book.author_id == coupon.author_id for book in books):
        return

    author_name = coupon.author.name if coupon.author else "the selected author"
    raise CouponNotApplicableError(
        f"This coupon is only valid for books by {author_name}",
        author_id=coupon.author_id,
        author_name=author_name,
    )


# -------- Admin management --------

def create_coupon(
    session: Session,
    *,
    code: str,
    discount_percentage: float,
    scope: str = SCOPE_ALL,
    author_id: Optional[int] = None,
    valid_from: Optional[datetime] = None,
    valid_to: Optional[datetime] = None,
) -> Coupon:
    normalized = normalize_code(code)
    if not normalized or not discount_percentage:
        raise ValidationError("Code and discount percentage are required")

    if discount_percentage < 1 or discount_percentage > 100:
        raise ValidationError("Discount percentage must be between 1 and 100")

    scope = scope or SCOPE_ALL
    if scope not in (SCOPE_ALL, SCOPE_AUTHOR):
        raise ValidationError("Scope must be 'all' or 'author'")

    if scope == SCOPE_AUTHOR:
        if not author_id:
            raise ValidationError('Author is required when scope is "author"')
        author = session.get(User, author_id)
        if not author or author.role != ROLE_AUTHOR:
            raise ValidationError("Invalid author")

    if valid_from and valid_to and valid_to < valid_from:
        raise ValidationError("validTo must be after validFrom")

    existing = session.exec(
        select(Coupon).where(Coupon.code == normalized)
    ).first()
    if existing:
        raise ValidationError("Coupon code already exists")

    coupon = Coupon(
        code=normalized,
        discount_percentage=float(discount_percentage),
        scope=scope,
        author_id=author_id if scope == SCOPE_AUTHOR else None,
        valid_from=valid_from,
        valid_to=valid_to,
    )
    session.add(coupon)
    session.commit()
    session.refresh(coupon)

    logger.info(f"Coupon {coupon.code} created ({coupon.discount_percentage}% / {coupon.scope})")
    return coupon


def list_coupons(session: Session) -> List[Coupon]:
    return session.exec(
        select(Coupon).order_by(Coupon.created_at.desc())
    ).all()


def toggle_coupon(session: Session, coupon_id: int) -> Coupon:
    coupon = session.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")

    coupon.is_active = not coupon.is_active
    session.add(coupon)
    session.commit()
    session.refresh(coupon)
    return coupon


def delete_coupon(session: Session, coupon_id: int) -> None:
    coupon = session.get(Coupon, coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")

    session.delete(coupon)
    session.commit()
