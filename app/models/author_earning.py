from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from app.models.order import Order


class AuthorEarning(SQLModel, table=True):
    """One author's net share of an order."""

    __tablename__ = "author_earning"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    author_id: int = Field(foreign_key="user.id", index=True)

    amount: float
    paid_out: bool = Field(default=False)
    paid_out_at: Optional[datetime] = None

    order: Optional["Order"] = Relationship(back_populates="earnings")
