"""
Cashfree payment gateway client

Thin httpx wrapper over the Cashfree PG orders API plus webhook signature
verification.
"""
import base64
import hashlib
import hmac
from typing import Any, Dict, Optional, Union

import httpx
from loguru import logger

from mockmate.core.config import settings


class PaymentGatewayError(Exception):
    """Gateway call failed or returned an error"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class GatewayNotConfigured(PaymentGatewayError):
    """Cashfree credentials are missing"""


class CashfreeGateway:
    """Cashfree PG client"""

    def __init__(
        self,
        app_id: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id if app_id is not None else settings.cashfree_app_id
        self.secret_key = secret_key if secret_key is not None else settings.cashfree_secret_key
        self.base_url = (base_url or settings.cashfree_base_url).rstrip("/")
        self.api_version = api_version or settings.cashfree_api_version
        self.timeout = timeout or settings.cashfree_timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.app_id and self.secret_key)

    @property
    def checkout_base_url(self) -> str:
        if "sandbox" in self.base_url:
            return "https://sandbox.cashfree.com"
        return "https://payments.cashfree.com"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-client-id": self.app_id,
            "x-client-secret": self.secret_key,
            "x-api-version": self.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.is_configured():
            raise GatewayNotConfigured("Cashfree credentials are not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(), json=json
                )
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                body = exc.response.text[:500]
                logger.error(
                    "Cashfree API error: status={}, response={}", exc.response.status_code, body
                )
                try:
                    message = exc.response.json().get("message") or body
                except ValueError:
                    message = body
                raise PaymentGatewayError(
                    f"Cashfree request failed: {message}", status_code=exc.response.status_code
                ) from exc
            except httpx.HTTPError as exc:
                logger.error("Cashfree API call failed: {}", exc)
                raise PaymentGatewayError(f"Cashfree request failed: {exc}") from exc

    async def create_order(
        self,
        *,
        order_id: str,
        amount: float,
        currency: str,
        customer: Dict[str, Any],
        return_url: str,
        notify_url: str,
        note: str = "",
    ) -> Dict[str, Any]:
        """Create an order and return the checkout details"""
        payload = {
            "order_id": order_id,
            "order_amount": round(amount, 2),
            "order_currency": currency,
            "customer_details": {
                "customer_id": customer["id"],
                "customer_name": customer.get("name") or "",
                "customer_email": customer.get("email") or "",
                "customer_phone": customer.get("phone") or "9999999999",
            },
            "order_meta": {
                "return_url": return_url,
                "notify_url": notify_url,
            },
            "order_note": note,
        }
        data = await self._request("POST", "/orders", json=payload)
        session_id = data.get("payment_session_id")
        logger.info("Cashfree order created: {} (cf_order_id={})", order_id, data.get("cf_order_id"))
        return {
            "order_id": data.get("order_id", order_id),
            "cf_order_id": data.get("cf_order_id"),
            "payment_session_id": session_id,
            "order_status": data.get("order_status"),
            "payment_link": f"{self.checkout_base_url}/links/{session_id}" if session_id else None,
        }

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/orders/{order_id}")
        return {
            "order_id": data.get("order_id", order_id),
            "cf_order_id": data.get("cf_order_id"),
            "order_status": data.get("order_status"),
            "order_amount": data.get("order_amount"),
            "order_currency": data.get("order_currency"),
        }

    def verify_webhook_signature(
        self, raw_body: Union[bytes, str], signature: Optional[str], timestamp: Optional[str]
    ) -> bool:
        """base64(HMAC-SHA256(secret, timestamp + body)) compared in constant time"""
        if not signature or not timestamp or not self.secret_key:
            return False
        expected = sign_webhook(self.secret_key, timestamp, raw_body)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8", "replace"))


def sign_webhook(secret_key: str, timestamp: str, raw_body: Union[bytes, str]) -> str:
    """Signature Cashfree sends for a webhook body, computed over the raw bytes"""
    body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
    digest = hmac.new(
        secret_key.encode("utf-8"), timestamp.encode("utf-8") + body, hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("utf-8")
