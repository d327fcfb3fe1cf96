"""PayPal Orders v2 client used for coin purchases."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx

from tutorlink.core.config import Settings
from tutorlink.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    order_id: str
    status: str


@dataclass
class GatewayCapture:
    """Outcome of a capture call. Only ``COMPLETED`` moves coins."""

    order_id: str
    status: str
    capture_id: Optional[str] = None
    payer_id: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED"


class PayPalGateway:
    def __init__(self, settings: Settings) -> None:
        self.client_id = settings.PAYPAL_CLIENT_ID
        self.client_secret = settings.PAYPAL_CLIENT_SECRET
        self.base_url = settings.paypal_base_url
        self.timeout = settings.PAYPAL_TIMEOUT_SECONDS
        self.brand_name = settings.BRAND_NAME
        self.return_url = f"{settings.FRONTEND_URL}/payment/success"
        self.cancel_url = f"{settings.FRONTEND_URL}/payment/cancel"

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        """Client-credentials token for the Orders API"""
        if not self.client_id or not self.client_secret:
            raise ExternalServiceError("PayPal", "credentials are not configured")

        response = await client.post(
            f"{self.base_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status_code != 200:
            logger.error("PayPal token request failed: %s", response.text)
            raise ExternalServiceError("PayPal", "authentication failed")

        data = response.json()
        if "access_token" not in data:
            raise ExternalServiceError("PayPal", "invalid token response")
        return data["access_token"]

    async def create_order(
        self,
        reference_id: str,
        amount: Decimal,
        currency: str,
        coins: int,
    ) -> GatewayOrder:
        """Create a CAPTURE-intent order tagged with our payment id"""
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": currency, "value": str(amount)},
                    "description": f"Purchase of {coins} coins",
                    "custom_id": reference_id,
                }
            ],
            "application_context": {
                "brand_name": self.brand_name,
                "landing_page": "BILLING",
                "user_action": "PAY_NOW",
                "return_url": self.return_url,
                "cancel_url": self.cancel_url,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._access_token(client)
                response = await client.post(
                    f"{self.base_url}/v2/checkout/orders",
                    json=body,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Prefer": "return=representation",
                    },
                )
        except httpx.TimeoutException as e:
            logger.error("PayPal order creation timeout")
            raise ExternalServiceError("PayPal", "order creation timed out") from e
        except httpx.HTTPError as e:
            logger.error("PayPal order creation error: %s", e)
            raise ExternalServiceError("PayPal", "order creation failed") from e

        if response.status_code not in (200, 201):
            logger.error("PayPal order creation failed: %s", response.text)
            raise ExternalServiceError(
                "PayPal", f"order creation returned {response.status_code}"
            )

        data = response.json()
        return GatewayOrder(order_id=data["id"], status=data.get("status", ""))

    async def capture_order(self, order_id: str) -> GatewayCapture:
        """Capture an approved order.

        A 422 means PayPal refused the capture (not approved, already
        captured); it is reported as a non-COMPLETED capture rather than
        an outage.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._access_token(client)
                response = await client.post(
                    f"{self.base_url}/v2/checkout/orders/{order_id}/capture",
                    json={},
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Prefer": "return=representation",
                    },
                )
        except httpx.TimeoutException as e:
            logger.error("PayPal capture timeout")
            raise ExternalServiceError("PayPal", "capture timed out") from e
        except httpx.HTTPError as e:
            logger.error("PayPal capture error: %s", e)
            raise ExternalServiceError("PayPal", "capture failed") from e

        if response.status_code == 422:
            data = response.json()
            issue = (data.get("details") or [{}])[0].get("issue") or data.get("name")
            logger.warning("PayPal refused capture of %s: %s", order_id, issue)
            return GatewayCapture(order_id=order_id, status=issue or "UNPROCESSABLE")

        if response.status_code not in (200, 201):
            logger.error("PayPal capture failed: %s", response.text)
            raise ExternalServiceError("PayPal", f"capture returned {response.status_code}")

        data = response.json()
        capture_id = None
        for unit in data.get("purchase_units", []):
            captures = unit.get("payments", {}).get("captures", [])
            if captures:
                capture_id = captures[0].get("id")
                break

        return GatewayCapture(
            order_id=data.get("id", order_id),
            status=data.get("status", ""),
            capture_id=capture_id or data.get("id"),
            payer_id=(data.get("payer") or {}).get("payer_id"),
        )
