from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_admin
from app.models.coupon import Coupon
from app.models.user import User
from app.schemas.coupon_schemas import CouponCreate, CouponOut
from app.services import coupon_service

router = APIRouter()


def coupon_out(coupon: Coupon) -> CouponOut:
    return CouponOut(
        id=coupon.id,
        code=coupon.code,
        discount_percentage=coupon.discount_percentage,
        scope=coupon.scope,
        author_id=coupon.author_id,
        author_name=coupon.author.name if coupon.author else None,
        is_active=coupon.is_active,
        valid_from=coupon.valid_from,
        valid_to=coupon.valid_to,
        created_at=coupon.created_at,
    )


@router.get("/")
def list_coupons(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    return [coupon_out(c) for c in coupon_service.list_coupons(session)]


@router.post("/", response_model=CouponOut, status_code=status.HTTP_201_CREATED)
def create_coupon(
    payload: CouponCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    coupon = coupon_service.create_coupon(
        session,
        code=payload.code,
        discount_percentage=payload.discount_percentage,
        scope=payload.scope,
        author_id=payload.author_id,
        valid_from=payload.valid_from,
        valid_to=payload.valid_to,
    )
    return coupon_out(coupon)


@router.patch("/{coupon_id}/toggle", response_model=CouponOut)
def toggle_coupon(
    coupon_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    return coupon_out(coupon_service.toggle_coupon(session, coupon_id))


@router.delete("/{coupon_id}")
def delete_coupon(
    coupon_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    coupon_service.delete_coupon(session, coupon_id)
    return {"message": "Coupon deleted successfully"}
