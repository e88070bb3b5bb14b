from pydantic import BaseModel, Field
from typing import List, Optional


class OrderItemIn(BaseModel):
    book_id: int


class CreateOrderRequest(BaseModel):
    items: List[OrderItemIn]
    payment_id: str = Field(..., min_length=1)
    discount_code: Optional[str] = None

    @property
    def book_ids(self) -> List[int]:
        return [item.book_id for item in self.items]
