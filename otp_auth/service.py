"""
Authentication Service
======================
Two-step OTP login: request a code, then verify it for a session token.

The service holds no state of its own. Rate limiting, pending codes and
accounts all live in the components passed to it.
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Optional, TypeVar
import structlog

from .accounts.models import Account
from .clock import Clock, SYSTEM_CLOCK
from .delivery import CodeSink, LogCodeSink
from .errors import (
    AccountAlreadyExists,
    AccountNotFound,
    CodeGenerationError,
    ConsistencyError,
    CredentialNotFound,
    InvalidCredentialError,
    RateLimitedError,
    ServiceError,
    StoreError,
    TransientStoreError,
)
from .identity import mask_phone
from .otp.generator import CodeGenerator, codes_match
from .otp.models import OneTimeCredential
from .rate_limit.sliding_window import RateLimiter
from .stores.base import CredentialStore, IdentityStore
from .tokens import TokenIssuer

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_CODE_TTL_SECONDS = 120
DEFAULT_STORE_TIMEOUT_SECONDS = 5.0


class AuthService:
    """
    Coordinates the limiter, code generator, stores and token issuer.

    Example:
        service = AuthService(
            limiter=SlidingWindowLimiter(rate=3, window=600),
            credentials=InMemoryCredentialStore(),
            identities=InMemoryIdentityStore(),
            tokens=TokenIssuer(secret),
        )

        await service.request_code("+15551234567")
        token = await service.verify_code("+15551234567", "482913")
    """

    def __init__(
        self,
        limiter: RateLimiter,
        credentials: CredentialStore,
        identities: IdentityStore,
        tokens: TokenIssuer,
        generator: Optional[CodeGenerator] = None,
        sink: Optional[CodeSink] = None,
        clock: Optional[Clock] = None,
        code_ttl_seconds: int = DEFAULT_CODE_TTL_SECONDS,
        store_timeout: float = DEFAULT_STORE_TIMEOUT_SECONDS,
    ):
        self.limiter = limiter
        self.credentials = credentials
        self.identities = identities
        self.tokens = tokens
        self.generator = generator or CodeGenerator()
        self.sink = sink or LogCodeSink()
        self.clock = clock or SYSTEM_CLOCK
        self.code_ttl_seconds = code_ttl_seconds
        self.store_timeout = store_timeout

    async def _bounded(self, operation: Awaitable[T]) -> T:
        """Run a store call with the configured timeout."""
        return await asyncio.wait_for(operation, timeout=self.store_timeout)

    # =========================================================================
    # Request code
    # =========================================================================

    async def request_code(self, identity: str) -> None:
        """
        Issue a new code for an identity and hand it to the sink.

        Any code still pending for the identity is replaced.

        Args:
            identity: Canonical identity (E.164 phone number)

        Raises:
            RateLimitedError: Too many requests in the current window
            TransientStoreError: The code could not be stored or delivered
            ServiceError: The secure random source failed
        """
        masked = mask_phone(identity)

        info = await self.limiter.check(identity)
        if not info.allowed:
            logger.info("OTP request rate limited", identity=masked, retry_after=info.retry_after)
            raise RateLimitedError(retry_after=info.retry_after)

        try:
            code = self.generator.generate()
        except CodeGenerationError:
            logger.error("OTP generation failed", identity=masked)
            raise

        now = self.clock.now()
        credential = OneTimeCredential(
            identity=identity,
            code=code,
            created_at=now,
            expires_at=now + timedelta(seconds=self.code_ttl_seconds),
        )

        try:
            await self._bounded(self.credentials.put(credential))
        except asyncio.TimeoutError as e:
            logger.error("Timed out storing OTP", identity=masked, timeout=self.store_timeout)
            raise TransientStoreError() from e
        except StoreError as e:
            logger.error("Failed to store OTP", identity=masked, error=str(e), operation=e.operation)
            raise TransientStoreError() from e

        try:
            await self.sink.deliver(identity, code, credential.expires_at)
        except Exception as e:
            logger.exception("Failed to deliver OTP", identity=masked, sink=type(self.sink).__name__)
            await self._discard(identity)
            raise TransientStoreError() from e

        logger.info("OTP request accepted", identity=masked, remaining=info.remaining)

    async def _discard(self, identity: str) -> None:
        """Drop an undelivered code; the caller is already failing."""
        try:
            await self._bounded(self.credentials.delete(identity))
        except (asyncio.TimeoutError, StoreError) as e:
            # expiry still retires the code
            logger.warning("Failed to discard undelivered OTP", identity=mask_phone(identity), error=str(e))

    # =========================================================================
    # Verify code
    # =========================================================================

    async def verify_code(self, identity: str, code: str) -> str:
        """
        Verify a submitted code and return a session token.

        The pending credential is consumed before the comparison, so it can
        be used for exactly one attempt whether or not the code matches.

        Args:
            identity: Canonical identity (E.164 phone number)
            code: Code submitted by the user

        Returns:
            Signed session token

        Raises:
            InvalidCredentialError: Wrong, expired, used or never-requested code
            ServiceError: Backend or internal failure
        """
        masked = mask_phone(identity)

        try:
            credential = await self._bounded(self.credentials.consume(identity))
        except CredentialNotFound as e:
            logger.info("OTP verification failed", identity=masked)
            raise InvalidCredentialError() from e
        except asyncio.TimeoutError as e:
            logger.error("Timed out consuming OTP", identity=masked, timeout=self.store_timeout)
            raise ServiceError() from e
        except StoreError as e:
            logger.error("Failed to consume OTP", identity=masked, error=str(e), operation=e.operation)
            raise ServiceError() from e

        if not codes_match(code, credential.code):
            logger.info("OTP verification failed", identity=masked)
            raise InvalidCredentialError()

        account = await self._resolve_account(identity)

        try:
            token = self.tokens.mint(account.id, account.identity)
        except Exception as e:
            logger.exception("Failed to mint session token", account_id=str(account.id))
            raise ServiceError() from e

        return token

    async def _resolve_account(self, identity: str) -> Account:
        """Find the account for an identity, creating it on first login."""
        masked = mask_phone(identity)

        try:
            account = await self._bounded(self.identities.find_by_identity(identity))
            logger.info("Existing account logged in", account_id=str(account.id), identity=masked)
            return account
        except AccountNotFound:
            pass
        except (asyncio.TimeoutError, StoreError) as e:
            logger.error("Failed to look up account", identity=masked, error=str(e))
            raise ServiceError() from e

        try:
            account = await self._bounded(self.identities.create(identity))
            logger.info("New account registered", account_id=str(account.id), identity=masked)
            return account
        except AccountAlreadyExists:
            logger.info("Concurrent registration detected, re-reading account", identity=masked)
        except (asyncio.TimeoutError, StoreError) as e:
            logger.error("Failed to create account", identity=masked, error=str(e))
            raise ServiceError() from e

        try:
            return await self._bounded(self.identities.find_by_identity(identity))
        except AccountNotFound as e:
            logger.critical("Account missing after uniqueness conflict", identity=masked)
            raise ConsistencyError("account vanished after uniqueness conflict") from e
        except (asyncio.TimeoutError, StoreError) as e:
            logger.error("Failed to re-read account", identity=masked, error=str(e))
            raise ServiceError() from e
