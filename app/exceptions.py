"""Domain errors raised by the marketplace services.

Routes let these propagate; ``app.main`` turns them into JSON responses with
the status code carried by each class.
"""
from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.message}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class ValidationError(MarketplaceError):
    status_code = 400


class NotFoundError(MarketplaceError):
    status_code = 404


class AuthorizationError(MarketplaceError):
    status_code = 403


# -------- Coupons --------

class CouponStateError(MarketplaceError):
    status_code = 400
    reason = "invalid"

    def __init__(self, message: str, **extra: Any):
        extra.setdefault("reason", self.reason)
        super().__init__(message, **extra)


class InactiveCouponError(CouponStateError):
    reason = "inactive"


class NotYetValidError(CouponStateError):
    reason = "not_yet_valid"


class ExpiredCouponError(CouponStateError):
    reason = "expired"


class CouponNotApplicableError(CouponStateError):
    reason = "author_scope_mismatch"


# -------- Payments --------

class PaymentVerificationError(MarketplaceError):
    status_code = 400


class PaymentNotCompletedError(PaymentVerificationError):
    pass


class AmountMismatchError(PaymentVerificationError):
    def __init__(self, expected, actual):
        super().__init__(
            "Paid amount does not match order total",
            expected=str(expected),
            actual=str(actual),
        )
        self.expected = expected
        self.actual = actual


class CurrencyMismatchError(PaymentVerificationError):
    def __init__(self, expected: str, actual: Optional[str]):
        super().__init__(
            "Payment currency does not match",
            expected=expected,
            actual=actual,
        )


class ExternalServiceError(MarketplaceError):
    status_code = 502

    def __init__(
        self,
        message: str,
        processor_status: Optional[int] = None,
        debug_id: Optional[str] = None,
        **extra: Any,
    ):
        super().__init__(
            message,
            processor_status=processor_status,
            debug_id=debug_id,
            **extra,
        )
        self.processor_status = processor_status
        self.debug_id = debug_id


class GatewayTimeoutError(ExternalServiceError):
    status_code = 504
