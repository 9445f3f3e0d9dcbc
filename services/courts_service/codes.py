"""One-time login codes.

``CodeChallengeSink`` is the contract of the external provider that generates
and delivers codes (email or WhatsApp). ``InMemoryCodeChallengeSink`` keeps
codes in process, which is enough for local runs and tests; it does not
deliver anything.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from libs.common.datetime_utils import utc_now


class CodeChallengeSink(Protocol):
    async def issue(self, channel: str, destination: str) -> str: ...

    async def verify(self, destination: str, code: str) -> bool: ...


@dataclass
class _IssuedCode:
    code: str
    channel: str
    expires_at: datetime


class InMemoryCodeChallengeSink:
    """Six-digit codes, valid for ``ttl_seconds`` and usable once.

    Issuing a new code for a destination replaces the previous one.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._codes: dict[str, _IssuedCode] = {}

    async def issue(self, channel: str, destination: str) -> str:
        code = f"{secrets.randbelow(1_000_000):06d}"
        self._codes[destination] = _IssuedCode(
            code=code, channel=channel, expires_at=self._clock() + self.ttl
        )
        return code

    async def verify(self, destination: str, code: str) -> bool:
        issued = self._codes.get(destination)
        if issued is None:
            return False
        if self._clock() >= issued.expires_at:
            del self._codes[destination]
            return False
        if not secrets.compare_digest(issued.code, code):
            return False
        del self._codes[destination]
        return True

    def issued_code(self, destination: str) -> Optional[str]:
        """Return the pending code for ``destination`` (local development only)."""
        issued = self._codes.get(destination)
        return issued.code if issued else None
