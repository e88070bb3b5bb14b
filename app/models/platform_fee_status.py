from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from typing import Optional
from datetime import datetime


class PlatformFeeStatus(SQLModel, table=True):
    __tablename__ = "platform_fee_status"
    __table_args__ = (
        UniqueConstraint("author_id", "period", name="uq_fee_status_author_period"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    author_id: int = Field(foreign_key="user.id", index=True)

    # "YYYY-MM" (calendar) or "YYYY-MM-DD_YYYY-MM-DD" (anniversary cycle)
    period: str = Field(index=True)

    is_paid: bool = Field(default=False)
    paid_at: Optional[datetime] = None
    note: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)
