from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING

from app.models.book import Book

if TYPE_CHECKING:
    from app.models.order import Order


class OrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    book_id: int = Field(foreign_key="book.id", index=True)

    book_title: str
    price: float       # list price at purchase time
    price_paid: float  # share of the order total after discount

    order: Optional["Order"] = Relationship(back_populates="items")
    book: Optional["Book"] = Relationship()
