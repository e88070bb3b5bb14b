import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from app.config import settings
from app.exceptions import (
    AmountMismatchError,
    CurrencyMismatchError,
    ExternalServiceError,
    GatewayTimeoutError,
    PaymentNotCompletedError,
    ValidationError,
)
from app.utils.money import format_amount, quantize

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"

# Refresh the OAuth token this many seconds before PayPal expires it
TOKEN_EXPIRY_MARGIN = 60


def _debug_id(response: Optional[requests.Response]) -> Optional[str]:
    if response is None:
        return None

    debug_id = response.headers.get("PayPal-Debug-Id") or response.headers.get("paypal-debug-id")
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("debug_id"):
        debug_id = body["debug_id"]
    return debug_id


def _captured_amount(order: Dict[str, Any]):
    """Return (value, currency) of the first capture, falling back to the unit amount."""
    units = order.get("purchase_units") or []
    if not units:
        return None, None

    unit = units[0]
    captures = (unit.get("payments") or {}).get("captures") or []
    amount = captures[0].get("amount") if captures else unit.get("amount")
    if not amount:
        return None, None
    return amount.get("value"), amount.get("currency_code")


class PayPalClient:
    """Thin adapter over the PayPal Orders v2 REST API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        currency: str = "USD",
        timeout: float = 15.0,
        mode: str = "sandbox",
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self.mode = mode.lower()
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    # -------- transport --------

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout:
            logger.error(f"PayPal {method} {path} timed out after {self.timeout}s")
            raise GatewayTimeoutError("Payment processor did not respond in time")
        except requests.RequestException as exc:
            logger.error(f"PayPal {method} {path} failed: {exc.__class__.__name__}")
            raise ExternalServiceError("Payment processor is unreachable")

        if response.status_code >= 400:
            debug_id = _debug_id(response)
            logger.error(
                f"PayPal {method} {path} returned {response.status_code} (debug_id={debug_id})"
            )
            raise ExternalServiceError(
                "Payment processor rejected the request",
                processor_status=response.status_code,
                debug_id=debug_id,
            )
        return response

    def _access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise ExternalServiceError("PayPal is not configured.")

        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = self._request(
            "POST",
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        body = response.json()
        self._token = body["access_token"]
        expires_in = int(body.get("expires_in", 300))
        self._token_expires_at = time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN)
        return self._token

    def _api(self, method: str, path: str, json: Optional[dict] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        return self._request(method, path, json=json, headers=headers).json()

    # -------- operations --------

    def create_order(self, pricing) -> str:
        """Register a CAPTURE intent for exactly the server-computed total."""
        total = quantize(pricing.total)
        if total <= 0:
            raise ValidationError("Invalid amount")

        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {
                        "currency_code": self.currency,
                        "value": format_amount(total),
                    },
                    "description": f"Purchase of {len(pricing.items)} book(s)",
                }
            ],
            "application_context": {"shipping_preference": "NO_SHIPPING"},
        }
        order = self._api("POST", "/v2/checkout/orders", json=body)
        logger.info(f"[PayPal create-order] OK id={order.get('id')} status={order.get('status')}")
        return order["id"]

    def capture_order(self, external_order_id: str) -> Dict[str, Any]:
        if not external_order_id:
            raise ValidationError("Order ID is required")

        capture = self._api("POST", f"/v2/checkout/orders/{external_order_id}/capture", json={})
        status = capture.get("status")
        logger.info(f"[PayPal capture-order] id={external_order_id} status={status}")

        if status != COMPLETED:
            raise PaymentNotCompletedError("Payment not completed", status=status)

        return {
            "order_id": external_order_id,
            "payment_id": capture.get("id"),
            "status": status,
            "payer": capture.get("payer"),
        }

    def get_order(self, external_order_id: str) -> Dict[str, Any]:
        return self._api("GET", f"/v2/checkout/orders/{external_order_id}")

    def verify_order(self, external_order_id: str, expected_amount) -> Dict[str, Any]:
        """
        Refetch the order from PayPal and require COMPLETED status, the
        configured currency and the exact expected amount (to the cent).
        """
        if not external_order_id:
            raise ValidationError("Payment ID is required")

        order = self.get_order(external_order_id)
        status = order.get("status")
        if status != COMPLETED:
            raise PaymentNotCompletedError("Payment not completed", status=status)

        value, currency = _captured_amount(order)
        if currency != self.currency:
            raise CurrencyMismatchError(self.currency, currency)

        expected = quantize(expected_amount)
        try:
            paid = quantize(Decimal(str(value)))
        except (ArithmeticError, ValueError):
            raise AmountMismatchError(expected, value)

        if paid != expected:
            logger.warning(
                f"PayPal amount mismatch for {external_order_id}: expected {expected}, paid {paid}"
            )
            raise AmountMismatchError(expected, paid)

        logger.info(f"[PayPal verify] {external_order_id} verified for {paid} {currency}")
        return {"order_id": external_order_id, "status": status, "amount": paid, "currency": currency}

    def client_config(self) -> Dict[str, Any]:
        return {
            "client_id": self.client_id,
            "mode": self.mode,
            "is_sandbox": self.mode != "live",
        }


paypal_client = PayPalClient(
    client_id=settings.PAYPAL_CLIENT_ID,
    client_secret=settings.PAYPAL_CLIENT_SECRET,
    base_url=settings.paypal_base_url,
    currency=settings.PAYPAL_CURRENCY,
    timeout=settings.PAYPAL_TIMEOUT_SECONDS,
    mode=settings.PAYPAL_MODE,
)


def get_payment_gateway() -> PayPalClient:
    return paypal_client
