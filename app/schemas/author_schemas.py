from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional


class PayoutSettingsUpdate(BaseModel):
    # Empty string clears the payout destination
    payout_paypal_email: Optional[EmailStr] = None

    @field_validator("payout_paypal_email", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value
