"""
Payment gateway clients for online reservation payments.

The payment processor only needs ``charge(amount, currency, reservation_id)``.
``DemoChargeGateway`` approves every charge (optionally after a delay) and is
used when no gateway URL is configured; ``HttpChargeGateway`` talks to a real
gateway over HTTP.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    approved: bool
    reference: str


class GatewayError(Exception):
    """Base exception for payment gateway errors."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, response_data: Optional[dict] = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class ChargeGateway(Protocol):
    async def charge(
        self, amount: int, currency: str, reservation_id: uuid.UUID
    ) -> ChargeResult: ...


class DemoChargeGateway:
    def __init__(self, latency: float = 0.0):
        self.latency = latency

    async def charge(
        self, amount: int, currency: str, reservation_id: uuid.UUID
    ) -> ChargeResult:
        if self.latency:
            await asyncio.sleep(self.latency)
        return ChargeResult(approved=True, reference=f"DEMO-{uuid.uuid4().hex[:12]}")


class HttpChargeGateway:
    """Async client for a card/wallet gateway charge endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("PAYMENT_GATEWAY_API_KEY is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, endpoint: str, json_data: dict) -> dict:
        url = f"{self.base_url}{endpoint}"
        if self._client is not None:
            response = await self._client.post(
                url, headers=self._headers, json=json_data, timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=self._headers, json=json_data)

        data = response.json()
        if not response.is_success:
            logger.error(f"Gateway API error: {response.status_code} - {data}")
            raise GatewayError(
                message=data.get("message", "Unknown gateway error"),
                status_code=response.status_code,
                response_data=data,
            )
        return data

    async def charge(
        self, amount: int, currency: str, reservation_id: uuid.UUID
    ) -> ChargeResult:
        data = await self._post(
            "/charges",
            {
                "amount": amount,
                "currency": currency,
                # Idempotency key on the gateway side: one charge per reservation.
                "reference": f"RES-{reservation_id}",
            },
        )
        return ChargeResult(
            approved=data.get("status") == "approved",
            reference=str(data.get("id") or data.get("reference") or ""),
        )
