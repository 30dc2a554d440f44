"""PayPal Orders v2 client."""

import logging
import time
from typing import Any, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import PaymentDeclinedError, PaymentGatewayError
from .base import CaptureResult, PaymentGateway, format_amount, parse_amount

logger = logging.getLogger(__name__)

# Issues PayPal reports with HTTP 422 when the payer's funding is refused
DECLINE_ISSUES = frozenset({
    "INSTRUMENT_DECLINED",
    "TRANSACTION_REFUSED",
    "PAYER_CANNOT_PAY",
    "PAYEE_BLOCKED_TRANSACTION",
    "CARD_EXPIRED",
    "REDIRECT_PAYER_FOR_ALTERNATE_FUNDING",
})

# PayPal answers a repeated capture with this issue once the money has moved
ALREADY_CAPTURED_ISSUE = "ORDER_ALREADY_CAPTURED"

# Refresh tokens this many seconds before PayPal says they expire
TOKEN_EXPIRY_MARGIN = 60


class OrderAlreadyCapturedError(Exception):
    """An earlier capture of the order succeeded; its outcome must be read back."""


class PayPalGateway(PaymentGateway):
    """
    PaymentGateway backed by the PayPal REST API.

    Uses OAuth2 client credentials; the access token is cached until shortly
    before it expires. A client may be injected for tests.
    """

    name = "paypal"

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    async def create_order(self, amount: int, currency: str, reference: str) -> str:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference,
                    "amount": {"currency_code": currency, "value": format_amount(amount)},
                }
            ],
        }
        # PayPal deduplicates creates carrying the same PayPal-Request-Id
        data = await self._request(
            "create_order",
            "POST",
            "/v2/checkout/orders",
            json=body,
            headers={"PayPal-Request-Id": reference},
        )

        order_id = data.get("id")
        if not order_id:
            raise PaymentGatewayError("create_order", "response did not include an order id")

        logger.info(
            "PayPal order created",
            extra={"order_id": order_id, "reference": reference, "amount": amount, "currency": currency}
        )
        return order_id

    async def capture_order(self, order_id: str) -> CaptureResult:
        try:
            data = await self._request(
                "capture_order",
                "POST",
                f"/v2/checkout/orders/{order_id}/capture",
                json={},
                order_id=order_id,
            )
        except OrderAlreadyCapturedError:
            # A previous attempt went through but its response never arrived
            logger.info("PayPal order already captured; reading it back", extra={"order_id": order_id})
            data = await self._request(
                "get_order",
                "GET",
                f"/v2/checkout/orders/{order_id}",
                order_id=order_id,
            )

        capture = self._first_capture(data)
        status = (capture or {}).get("status") or data.get("status", "UNKNOWN")
        if status in ("DECLINED", "FAILED"):
            raise PaymentDeclinedError(order_id=order_id, reason=f"capture {status.lower()}")

        amount = (capture or {}).get("amount", {})
        result = CaptureResult(
            status=status,
            capture_id=(capture or {}).get("id"),
            amount=parse_amount(amount["value"]) if "value" in amount else 0,
            currency=amount.get("currency_code", ""),
        )

        logger.info(
            "PayPal order captured",
            extra={"order_id": order_id, "capture_id": result.capture_id, "status": result.status}
        )
        return result

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _first_capture(data: dict[str, Any]) -> Optional[dict[str, Any]]:
        for unit in data.get("purchase_units", []):
            captures = unit.get("payments", {}).get("captures", [])
            if captures:
                return captures[0]
        return None

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        try:
            response = await self._client.post(
                f"{self.base_url}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise PaymentGatewayError("authenticate", str(e) or type(e).__name__)

        if response.status_code != 200:
            logger.error(
                "PayPal authentication failed",
                extra={"status_code": response.status_code}
            )
            raise PaymentGatewayError("authenticate", f"HTTP {response.status_code}")

        payload = response.json()
        self._token = payload["access_token"]
        self._token_expires_at = time.monotonic() + int(payload.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN
        return self._token

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        order_id: str = "",
    ) -> dict[str, Any]:
        token = await self._access_token()
        request_headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
            **(headers or {}),
        }

        try:
            response = await self._client.request(method, f"{self.base_url}{path}", json=json, headers=request_headers)
        except httpx.HTTPError as e:
            logger.error(
                "PayPal request failed",
                extra={"operation": operation, "error": str(e) or type(e).__name__}
            )
            raise PaymentGatewayError(operation, str(e) or type(e).__name__)

        if response.status_code == 401:
            # Token revoked early; fetch a new one on the next call
            self._token = None
            raise PaymentGatewayError(operation, "access token rejected")

        if response.status_code == 422:
            issue = self._issue(response)
            if issue in DECLINE_ISSUES:
                logger.warning(
                    "PayPal declined payment",
                    extra={"operation": operation, "order_id": order_id, "issue": issue}
                )
                raise PaymentDeclinedError(order_id=order_id or "new", reason=issue)
            if issue == ALREADY_CAPTURED_ISSUE:
                raise OrderAlreadyCapturedError(order_id)
            raise PaymentGatewayError(operation, f"unprocessable: {issue}")

        if response.status_code >= 400:
            logger.error(
                "PayPal returned an error",
                extra={"operation": operation, "status_code": response.status_code, "issue": self._issue(response)}
            )
            raise PaymentGatewayError(operation, f"HTTP {response.status_code}")

        return response.json()

    @staticmethod
    def _issue(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return "UNKNOWN"
        details = payload.get("details") or [{}]
        return details[0].get("issue") or payload.get("name") or "UNKNOWN"


_gateway: Optional[PayPalGateway] = None


def get_paypal_gateway() -> PayPalGateway:
    """Process-wide PayPal client configured from settings."""
    global _gateway
    if _gateway is None:
        _gateway = PayPalGateway(
            base_url=settings.paypal_base_url,
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            timeout=settings.payment_timeout_seconds,
        )
    return _gateway


async def close_paypal_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
