from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password: str
    role: str = Field(default="customer")  # customer | author | admin
    can_login: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Author payout + fee gate
    payout_paypal_email: Optional[str] = None
    is_blocked: bool = Field(default=False)
    blocked_reason: Optional[str] = None
    blocked_at: Optional[datetime] = None
