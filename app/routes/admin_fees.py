from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.dependencies.roles import require_admin
from app.dependencies.services import get_billing_engine
from app.models.platform_fee_status import PlatformFeeStatus
from app.models.user import User
from app.schemas.admin_schemas import FeeStatusUpdate
from app.services.author_gate import get_author, serialize_author, unblock_author
from app.services.billing_service import BillingCycleEngine, PeriodStrategy, shift_month


router = APIRouter()


def serialize_status(record: PlatformFeeStatus) -> dict:
    return {
        "author_id": record.author_id,
        "period": record.period,
        "is_paid": record.is_paid,
        "paid_at": record.paid_at,
        "note": record.note,
        "updated_at": record.updated_at,
    }


def resolve_period_key(billing: BillingCycleEngine, author: User, period: Optional[str]) -> str:
    """Explicit key (validated for this author) or the author's previous period."""
    if period and period.strip():
        return billing.strategy.period_from_key(author, period.strip()).key
    return billing.strategy.previous_period(author, datetime.utcnow()).key


@router.get("/")
def list_fees(
    period: Optional[str] = None,
    billing: BillingCycleEngine = Depends(get_billing_engine),
    current_user: User = Depends(require_admin),
):
    now = datetime.utcnow()
    if period and period.strip():
        year, month = PeriodStrategy.parse_month(period)
        rows = billing.fee_rows(year, month, now)
    else:
        # Per-author previous period; anniversary cycles differ between authors
        year, month = shift_month(now.year, now.month, -1)
        rows = billing.previous_fee_rows(now)

    return {
        "period": f"{year:04d}-{month:02d}",
        "billing_mode": billing.strategy.name,
        "fee_percentage": billing.fee_percentage,
        "rows": rows,
    }


@router.post("/{author_id}/mark-paid")
def mark_paid(
    author_id: int,
    payload: FeeStatusUpdate,
    session: Session = Depends(get_session),
    billing: BillingCycleEngine = Depends(get_billing_engine),
    current_user: User = Depends(require_admin),
):
    author = get_author(session, author_id)
    key = resolve_period_key(billing, author, payload.period)

    record = billing.mark_paid(author, key, note=payload.note)

    if settings.FEE_PAID_AUTO_UNBLOCK and author.is_blocked:
        author = unblock_author(session, author)

    return {"success": True, "status": serialize_status(record), "author": serialize_author(author)}


@router.post("/{author_id}/mark-unpaid")
def mark_unpaid(
    author_id: int,
    payload: FeeStatusUpdate,
    session: Session = Depends(get_session),
    billing: BillingCycleEngine = Depends(get_billing_engine),
    current_user: User = Depends(require_admin),
):
    author = get_author(session, author_id)
    key = resolve_period_key(billing, author, payload.period)

    # Never blocks; blocking stays a separate admin action
    record = billing.mark_unpaid(author, key, note=payload.note)

    return {"success": True, "status": serialize_status(record)}
