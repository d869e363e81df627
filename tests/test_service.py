"""
Authentication Service Tests
============================
End-to-end behaviour of request_code / verify_code over in-memory stores.
"""

import asyncio

import pytest

from otp_auth.errors import (
    ConsistencyError,
    CodeGenerationError,
    InvalidCredentialError,
    RateLimitedError,
    ServiceError,
    StoreError,
    TransientStoreError,
    AccountNotFound,
    AccountAlreadyExists,
)
from otp_auth.service import AuthService
from otp_auth.stores import InMemoryCredentialStore, InMemoryIdentityStore

from conftest import PHONE, CollectingSink, FixedGenerator


class FailingCredentialStore(InMemoryCredentialStore):
    """Credential store whose writes and consumes fail."""

    async def put(self, credential):
        raise StoreError("connection refused", operation="credential.put")

    async def consume(self, identity):
        raise StoreError("connection refused", operation="credential.consume")


class SlowCredentialStore(InMemoryCredentialStore):
    """Credential store that never answers in time."""

    async def put(self, credential):
        await asyncio.sleep(10)


class RacingIdentityStore(InMemoryIdentityStore):
    """Simulates another request registering the identity first."""

    def __init__(self, clock, lose_account=False):
        super().__init__(clock=clock)
        self.lose_account = lose_account

    async def create(self, identity):
        if not self.lose_account:
            await super().create(identity)
        raise AccountAlreadyExists(identity)


class SequenceGenerator:
    """Returns the given codes in order."""

    length = 6

    def __init__(self, *codes):
        self._codes = iter(codes)

    def generate(self):
        return next(self._codes)


class YieldingIdentityStore(InMemoryIdentityStore):
    """Yields to the event loop before every lookup to force interleaving."""

    async def find_by_identity(self, identity):
        await asyncio.sleep(0)
        return await super().find_by_identity(identity)


class FailingSink(CollectingSink):
    """Sink whose delivery channel is down."""

    async def deliver(self, identity, code, expires_at):
        raise ConnectionError("smsc down: gateway credentials rejected")


class BrokenGenerator:
    length = 6

    def generate(self):
        raise CodeGenerationError("secure random source unavailable")


def build_service(clock, sink, tokens, limiter, credentials=None, identities=None, **kwargs):
    return AuthService(
        limiter=limiter,
        credentials=credentials if credentials is not None else InMemoryCredentialStore(clock=clock),
        identities=identities if identities is not None else InMemoryIdentityStore(clock=clock),
        tokens=tokens,
        sink=sink,
        clock=clock,
        code_ttl_seconds=120,
        store_timeout=0.05,
        **kwargs,
    )


class TestRequestCode:
    """Tests for code issuance."""

    @pytest.mark.asyncio
    async def test_code_delivered_not_returned(self, service, sink, clock):
        result = await service.request_code(PHONE)

        assert result is None
        identity, code, expires_at = sink.delivered[-1]
        assert identity == PHONE
        assert len(code) == 6 and code.isdigit()
        assert (expires_at - clock.now()).total_seconds() == 120

    @pytest.mark.asyncio
    async def test_code_is_stored(self, service, sink, credentials):
        await service.request_code(PHONE)

        stored = await credentials.get(PHONE)
        assert stored.code == sink.last_code(PHONE)

    @pytest.mark.asyncio
    async def test_rate_limited_after_three(self, service):
        for _ in range(3):
            await service.request_code(PHONE)

        with pytest.raises(RateLimitedError) as exc_info:
            await service.request_code(PHONE)

        assert exc_info.value.retry_after == 601

    @pytest.mark.asyncio
    async def test_rate_limit_recovers(self, service, clock):
        for _ in range(3):
            await service.request_code(PHONE)
            clock.advance(10)

        with pytest.raises(RateLimitedError):
            await service.request_code(PHONE)

        clock.advance(600 - 30 + 1)
        await service.request_code(PHONE)

    @pytest.mark.asyncio
    async def test_new_request_replaces_code(self, clock, sink, tokens, limiter):
        service = build_service(
            clock, sink, tokens, limiter,
            generator=SequenceGenerator("111111", "222222"),
        )
        await service.request_code(PHONE)
        await service.request_code(PHONE)

        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, "111111")

    @pytest.mark.asyncio
    async def test_replaced_code_verifies_latest(self, clock, sink, tokens, limiter):
        service = build_service(
            clock, sink, tokens, limiter,
            generator=SequenceGenerator("111111", "222222"),
        )
        await service.request_code(PHONE)
        await service.request_code(PHONE)

        token = await service.verify_code(PHONE, "222222")
        assert tokens.verify(token).identity == PHONE

    @pytest.mark.asyncio
    async def test_store_failure(self, clock, sink, tokens, limiter):
        failing = FailingCredentialStore(clock=clock)
        service = build_service(clock, sink, tokens, limiter, credentials=failing)
        assert service.credentials is failing

        with pytest.raises(TransientStoreError) as exc_info:
            await service.request_code(PHONE)

        assert sink.delivered == []
        assert "connection refused" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_store_timeout(self, clock, sink, tokens, limiter):
        service = build_service(
            clock, sink, tokens, limiter,
            credentials=SlowCredentialStore(clock=clock),
        )

        with pytest.raises(TransientStoreError):
            await service.request_code(PHONE)
        assert sink.delivered == []

    @pytest.mark.asyncio
    async def test_delivery_failure(self, clock, tokens, limiter, credentials):
        """A failed delivery discards the code and hides the channel error."""
        service = build_service(
            clock, FailingSink(), tokens, limiter,
            credentials=credentials,
            generator=FixedGenerator("482913"),
        )

        with pytest.raises(TransientStoreError) as exc_info:
            await service.request_code(PHONE)

        assert "smsc" not in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert len(credentials) == 0
        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, "482913")

    @pytest.mark.asyncio
    async def test_entropy_failure(self, clock, sink, tokens, limiter):
        service = build_service(clock, sink, tokens, limiter, generator=BrokenGenerator())

        with pytest.raises(ServiceError):
            await service.request_code(PHONE)
        assert sink.delivered == []


class TestVerifyCode:
    """Tests for code verification."""

    @pytest.mark.asyncio
    async def test_login_scenario(self, clock, sink, tokens, limiter, identities):
        """Request, verify within TTL, then reuse fails."""
        service = build_service(
            clock, sink, tokens, limiter,
            identities=identities,
            generator=FixedGenerator("482913"),
        )

        await service.request_code("+15551234567")
        clock.advance(60)
        token = await service.verify_code("+15551234567", "482913")

        claims = tokens.verify(token)
        assert claims.identity == "+15551234567"
        account = await identities.find_by_identity("+15551234567")
        assert claims.account_id == account.id

        with pytest.raises(InvalidCredentialError):
            await service.verify_code("+15551234567", "482913")

    @pytest.mark.asyncio
    async def test_expired_code(self, service, sink, clock):
        await service.request_code(PHONE)
        code = sink.last_code(PHONE)
        clock.advance(120)

        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, code)

    @pytest.mark.asyncio
    async def test_never_requested(self, service):
        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, "482913")

    @pytest.mark.asyncio
    async def test_wrong_code_burns_credential(self, clock, sink, tokens, limiter):
        service = build_service(clock, sink, tokens, limiter, generator=FixedGenerator("482913"))
        await service.request_code(PHONE)

        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, "000000")
        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, "482913")

    @pytest.mark.asyncio
    async def test_failures_indistinguishable(self, clock, sink, tokens, limiter):
        """Wrong, expired and never-requested codes produce the same error."""
        service = build_service(clock, sink, tokens, limiter, generator=FixedGenerator("482913"))
        errors = []

        with pytest.raises(InvalidCredentialError) as never:
            await service.verify_code(PHONE, "482913")
        errors.append(never.value)

        await service.request_code(PHONE)
        with pytest.raises(InvalidCredentialError) as wrong:
            await service.verify_code(PHONE, "111111")
        errors.append(wrong.value)

        await service.request_code(PHONE)
        clock.advance(121)
        with pytest.raises(InvalidCredentialError) as expired:
            await service.verify_code(PHONE, "482913")
        errors.append(expired.value)

        assert len({(type(e), str(e), e.code) for e in errors}) == 1

    @pytest.mark.asyncio
    async def test_first_login_creates_one_account(self, service, sink, identities, tokens):
        await service.request_code(PHONE)
        first_token = await service.verify_code(PHONE, sink.last_code(PHONE))
        await service.request_code(PHONE)
        second_token = await service.verify_code(PHONE, sink.last_code(PHONE))

        accounts, total = await identities.list(10, 0)
        assert total == 1
        assert tokens.verify(first_token).account_id == accounts[0].id
        assert tokens.verify(second_token).account_id == accounts[0].id

    @pytest.mark.asyncio
    async def test_concurrent_verify_single_success(self, clock, sink, tokens, limiter):
        """Two racing verifications with the correct code: exactly one wins."""
        service = build_service(clock, sink, tokens, limiter, generator=FixedGenerator("482913"))
        await service.request_code(PHONE)

        results = await asyncio.gather(
            service.verify_code(PHONE, "482913"),
            service.verify_code(PHONE, "482913"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, str) for r in results) == 1
        assert sum(isinstance(r, InvalidCredentialError) for r in results) == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_logins_share_account(self, clock, sink, tokens):
        """Two racing first-time logins for one identity resolve to one account."""
        identities = YieldingIdentityStore(clock=clock)
        services = [
            AuthService(
                limiter=_unlimited(clock),
                credentials=InMemoryCredentialStore(clock=clock),
                identities=identities,
                tokens=tokens,
                generator=FixedGenerator("482913"),
                sink=sink,
                clock=clock,
            )
            for _ in range(2)
        ]

        for service in services:
            await service.request_code(PHONE)

        first, second = await asyncio.gather(
            *(service.verify_code(PHONE, "482913") for service in services)
        )

        accounts, total = await identities.list(10, 0)
        assert total == 1
        assert tokens.verify(first).account_id == tokens.verify(second).account_id

    @pytest.mark.asyncio
    async def test_create_race_rereads_account(self, clock, sink, tokens, limiter):
        identities = RacingIdentityStore(clock)
        service = build_service(
            clock, sink, tokens, limiter,
            identities=identities,
            generator=FixedGenerator("482913"),
        )
        await service.request_code(PHONE)

        token = await service.verify_code(PHONE, "482913")

        account = await identities.find_by_identity(PHONE)
        assert tokens.verify(token).account_id == account.id

    @pytest.mark.asyncio
    async def test_create_race_missing_account_is_fatal(self, clock, sink, tokens, limiter):
        identities = RacingIdentityStore(clock, lose_account=True)
        service = build_service(
            clock, sink, tokens, limiter,
            identities=identities,
            generator=FixedGenerator("482913"),
        )
        await service.request_code(PHONE)

        with pytest.raises(ConsistencyError) as exc_info:
            await service.verify_code(PHONE, "482913")
        assert isinstance(exc_info.value, ServiceError)

        with pytest.raises(AccountNotFound):
            await identities.find_by_identity(PHONE)

    @pytest.mark.asyncio
    async def test_consume_backend_failure_is_service_error(self, clock, sink, tokens, limiter):
        service = build_service(
            clock, sink, tokens, limiter,
            credentials=FailingCredentialStore(clock=clock),
        )

        with pytest.raises(ServiceError) as exc_info:
            await service.verify_code(PHONE, "482913")
        assert not isinstance(exc_info.value, InvalidCredentialError)

    @pytest.mark.asyncio
    async def test_expiry_without_janitor(self, service, sink, clock, credentials):
        """Expiry holds with no cleanup task running."""
        await service.request_code(PHONE)
        code = sink.last_code(PHONE)
        clock.advance(3600)

        assert len(credentials) == 1
        with pytest.raises(InvalidCredentialError):
            await service.verify_code(PHONE, code)


def _unlimited(clock):
    from otp_auth.rate_limit import SlidingWindowLimiter

    return SlidingWindowLimiter(rate=100, window=600, clock=clock)
