from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=40)
    discount_percentage: float
    scope: Literal["all", "author"] = "all"
    author_id: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None


class CouponOut(BaseModel):
    id: int
    code: str
    discount_percentage: float
    scope: str
    author_id: Optional[int]
    author_name: Optional[str] = None
    is_active: bool
    valid_from: Optional[datetime]
    valid_to: Optional[datetime]
    created_at: datetime
