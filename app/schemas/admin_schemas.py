from pydantic import BaseModel, Field
from typing import Literal, Optional


class FeeStatusUpdate(BaseModel):
    period: Optional[str] = None  # YYYY-MM, or a cycle key in anniversary mode
    note: Optional[str] = ""


class BlockAuthorRequest(BaseModel):
    reason: Optional[str] = None


class BookStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]


class PayoutMarkPaidRequest(BaseModel):
    author_id: int
    amount: float = Field(..., gt=0)
