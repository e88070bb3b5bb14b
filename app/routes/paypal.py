from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_customer
from app.exceptions import ValidationError
from app.models.user import User
from app.schemas.checkout_schemas import PayPalCaptureRequest, PayPalCreateOrderRequest
from app.services.paypal_client import get_payment_gateway
from app.services.pricing_service import price_cart

router = APIRouter()


@router.post("/create-order")
def create_order(
    payload: PayPalCreateOrderRequest,
    session: Session = Depends(get_session),
    gateway=Depends(get_payment_gateway),
    current_user: User = Depends(require_customer),
):
    if not payload.book_ids:
        raise HTTPException(400, "Cart is empty")

    pricing = price_cart(session, payload.book_ids, payload.discount_code)
    if pricing.missing_book_ids:
        raise ValidationError(
            "Some books are not available",
            missing_book_ids=pricing.missing_book_ids,
        )

    order_id = gateway.create_order(pricing)
    return {"success": True, "order_id": order_id, "total": pricing.as_response()["new_total"]}


@router.post("/capture-order")
def capture_order(
    payload: PayPalCaptureRequest,
    gateway=Depends(get_payment_gateway),
    current_user: User = Depends(require_customer),
):
    result = gateway.capture_order(payload.order_id)
    return {"success": True, **result}


@router.get("/client-id")
def client_id(gateway=Depends(get_payment_gateway)):
    return gateway.client_config()
