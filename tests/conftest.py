"""
Shared fixtures for the OTP auth core tests.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest

from otp_auth.clock import Clock
from otp_auth.delivery import CodeSink
from otp_auth.rate_limit import SlidingWindowLimiter
from otp_auth.service import AuthService
from otp_auth.stores import InMemoryCredentialStore, InMemoryIdentityStore
from otp_auth.tokens import TokenIssuer

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256!"
PHONE = "+15551234567"


class FakeClock(Clock):
    """Manually advanced clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self._now = start
        self._monotonic = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds


class CollectingSink(CodeSink):
    """Keeps delivered codes in memory."""

    name = "collecting"

    def __init__(self):
        self.delivered: List[Tuple[str, str, datetime]] = []

    async def deliver(self, identity, code, expires_at):
        self.delivered.append((identity, code, expires_at))

    def last_code(self, identity: str) -> str:
        for delivered_identity, code, _ in reversed(self.delivered):
            if delivered_identity == identity:
                return code
        raise AssertionError(f"no code delivered for {identity}")


class FixedGenerator:
    """Code generator returning a preset code."""

    def __init__(self, code: str):
        self.code = code
        self.length = len(code)

    def generate(self) -> str:
        return self.code


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def limiter(clock):
    return SlidingWindowLimiter(rate=3, window=600, clock=clock)


@pytest.fixture
def credentials(clock):
    return InMemoryCredentialStore(clock=clock)


@pytest.fixture
def identities(clock):
    return InMemoryIdentityStore(clock=clock)


@pytest.fixture
def tokens(clock):
    return TokenIssuer(TEST_SECRET, ttl_seconds=24 * 3600, clock=clock)


@pytest.fixture
def service(limiter, credentials, identities, tokens, sink, clock):
    return AuthService(
        limiter=limiter,
        credentials=credentials,
        identities=identities,
        tokens=tokens,
        sink=sink,
        clock=clock,
        code_ttl_seconds=120,
        store_timeout=1.0,
    )
