from fastapi import Depends
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.services.billing_service import BillingCycleEngine, get_period_strategy
from app.services.order_service import OrderLedger
from app.services.paypal_client import get_payment_gateway


def get_billing_engine(session: Session = Depends(get_session)) -> BillingCycleEngine:
    return BillingCycleEngine(
        session,
        fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
        trial_days=settings.TRIAL_DAYS,
        strategy=get_period_strategy(settings.BILLING_PERIOD_MODE, settings.FEE_DUE_DAY),
    )


def get_order_ledger(
    session: Session = Depends(get_session),
    gateway=Depends(get_payment_gateway),
) -> OrderLedger:
    return OrderLedger(
        session,
        gateway,
        fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
        payouts_direct_to_authors=settings.PAYOUTS_DIRECT_TO_AUTHORS,
    )
