from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.roles import require_admin, require_customer
from app.dependencies.services import get_order_ledger
from app.models.user import User
from app.schemas.orders_schemas import CreateOrderRequest
from app.services.order_service import OrderLedger, serialize_order
from app.utils.token import get_current_user

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderRequest,
    ledger: OrderLedger = Depends(get_order_ledger),
    current_user: User = Depends(require_customer),
):
    if not payload.items:
        raise HTTPException(400, "Cart is empty")

    order = ledger.create_order(
        current_user,
        payload.book_ids,
        payload.payment_id,
        coupon_code=payload.discount_code,
    )
    return serialize_order(order)


@router.get("/my-orders")
def my_orders(
    ledger: OrderLedger = Depends(get_order_ledger),
    current_user: User = Depends(require_customer),
):
    return [serialize_order(o) for o in ledger.list_customer_orders(current_user)]


@router.get("/all")
def all_orders(
    ledger: OrderLedger = Depends(get_order_ledger),
    current_user: User = Depends(require_admin),
):
    return [serialize_order(o) for o in ledger.list_all_orders()]


@router.get("/{order_id}")
def get_order(
    order_id: int,
    ledger: OrderLedger = Depends(get_order_ledger),
    current_user: User = Depends(get_current_user),
):
    return serialize_order(ledger.get_order_for_user(order_id, current_user))
