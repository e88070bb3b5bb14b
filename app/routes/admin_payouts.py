from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_admin
from app.models.user import User
from app.schemas.admin_schemas import PayoutMarkPaidRequest
from app.services import payout_service
from app.services.author_gate import get_author

router = APIRouter()


@router.get("/")
def unpaid_earnings(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    return payout_service.unpaid_earnings_by_author(session)


@router.post("/mark-paid")
def mark_paid(
    payload: PayoutMarkPaidRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    author = get_author(session, payload.author_id)
    result = payout_service.mark_earnings_paid_out(session, author.id, payload.amount)
    return {"message": "Earnings marked as paid", **result}
