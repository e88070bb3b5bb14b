import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.dependencies.roles import require_author
from app.dependencies.services import get_billing_engine
from app.models.user import User
from app.schemas.author_schemas import PayoutSettingsUpdate
from app.services import book_service, report_service
from app.services.author_gate import reconcile_book_visibility
from app.services.billing_service import BillingCycleEngine
from app.services.payout_service import author_earnings_totals

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard")
def dashboard(
    session: Session = Depends(get_session),
    billing: BillingCycleEngine = Depends(get_billing_engine),
    current_user: User = Depends(require_author),
):
    reconcile_book_visibility(session, current_user)

    books = book_service.author_books(session, current_user)

    return {
        "books": len(books),
        **author_earnings_totals(session, current_user),
        **billing.dashboard_summary(current_user),
        "admin_payment_email": settings.ADMIN_PAYMENT_EMAIL,
        "is_blocked": current_user.is_blocked,
        "blocked_reason": current_user.blocked_reason,
        "books_list": [book_service.serialize_owned_book(b) for b in books],
    }


@router.get("/my-books")
def my_books(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_author),
):
    return [
        book_service.serialize_owned_book(b)
        for b in book_service.author_books(session, current_user)
    ]


@router.get("/payout-settings")
def get_payout_settings(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_author),
):
    reconcile_book_visibility(session, current_user)
    return {"payout_paypal_email": current_user.payout_paypal_email or ""}


@router.post("/payout-settings")
def update_payout_settings(
    payload: PayoutSettingsUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_author),
):
    email = (payload.payout_paypal_email or "").lower()

    current_user.payout_paypal_email = email or None
    session.add(current_user)
    session.commit()
    session.refresh(current_user)

    changed = reconcile_book_visibility(session, current_user)
    logger.info(f"Author {current_user.id} updated payout settings ({changed} book(s) synced)")

    return {
        "message": "Payout settings updated successfully",
        "user": {
            "id": current_user.id,
            "name": current_user.name,
            "email": current_user.email,
            "payout_paypal_email": current_user.payout_paypal_email or "",
        },
    }


@router.get("/reports/monthly/{year}/{month}")
def monthly_report(
    year: int,
    month: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_author),
):
    pdf, filename = report_service.author_report(
        session, current_user, year, month, settings.PLATFORM_FEE_PERCENTAGE
    )
    return report_service.pdf_response(pdf, filename)
