"""
Membership registry lookup.

Registration asks the club's membership registry whether a government id
belongs to an active member. Two strategies are provided:

- ``ParityMembershipLookup``: demo rule, an id ending in an even digit is an
  active member. Used when no registry URL is configured.
- ``HttpMembershipLookup``: calls a registry over HTTP.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from libs.common.logging import get_logger
from services.courts_service.errors import MembershipUnavailable

logger = get_logger(__name__)


@dataclass(frozen=True)
class MembershipResult:
    active: bool


class MembershipLookup(Protocol):
    async def lookup(self, gov_id: str) -> MembershipResult: ...


class ParityMembershipLookup:
    """Demo registry: ids whose last character is an even digit are members."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency

    async def lookup(self, gov_id: str) -> MembershipResult:
        if self.latency:
            await asyncio.sleep(self.latency)
        last = gov_id.strip()[-1:]
        return MembershipResult(active=last.isdigit() and int(last) % 2 == 0)


class HttpMembershipLookup:
    """Membership registry reached over HTTP.

    Expects ``GET {base_url}/members/{gov_id}`` to answer ``{"active": bool}``;
    a 404 means "not a member".
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def lookup(self, gov_id: str) -> MembershipResult:
        url = f"{self.base_url}/members/{gov_id}"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Membership registry request failed: {e}")
            raise MembershipUnavailable() from e

        if response.status_code == 404:
            return MembershipResult(active=False)
        if not response.is_success:
            logger.error(
                f"Membership registry returned {response.status_code}: {response.text}"
            )
            raise MembershipUnavailable()

        return MembershipResult(active=bool(response.json().get("active", False)))
