# app/schemas/checkout_schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1)
    book_ids: List[int]


class PayPalCreateOrderRequest(BaseModel):
    book_ids: List[int]
    discount_code: Optional[str] = None


class PayPalCaptureRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
