from sqlmodel import SQLModel, Field, Relationship
from typing import Optional
from datetime import datetime

from app.models.user import User


class Coupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)  # always stored uppercase
    discount_percentage: float = Field(ge=1, le=100)
    scope: str = Field(default="all")  # all | author

    author_id: Optional[int] = Field(default=None, foreign_key="user.id")
    author: Optional["User"] = Relationship()

    is_active: bool = Field(default=True, index=True)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
