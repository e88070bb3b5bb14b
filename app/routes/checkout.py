from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.database import get_session
from app.models.user import User
from app.schemas.checkout_schemas import ApplyCouponRequest
from app.services.pricing_service import price_cart
from app.utils.token import get_current_user

router = APIRouter()


@router.post("/apply-coupon")
def apply_coupon(
    payload: ApplyCouponRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if not payload.book_ids:
        raise HTTPException(400, "Code and book IDs are required")

    # Same pricing path as order creation, so the previewed total is the charged total
    pricing = price_cart(session, payload.book_ids, payload.code)

    return {"success": True, **pricing.as_response()}
