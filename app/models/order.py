from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime

from app.models.author_earning import AuthorEarning
from app.models.order_item import OrderItem
from app.models.user import User


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(foreign_key="user.id", index=True)

    total_amount: float
    platform_earnings: float
    author_earnings: float

    # PayPal order id the customer paid with
    payment_id: str = Field(index=True, unique=True)
    payment_status: str = Field(default="pending")  # pending | completed | failed

    discount_code: Optional[str] = None
    discount_percentage: Optional[float] = None
    discount_amount: float = 0.0

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    customer: Optional["User"] = Relationship()
    items: List["OrderItem"] = Relationship(back_populates="order")
    earnings: List["AuthorEarning"] = Relationship(back_populates="order")
