"""
Wiring
======
Builds the authentication core from an ``AuthConfig``.
"""

from dataclasses import dataclass
from typing import Optional
import structlog

from .accounts.service import AccountService
from .clock import Clock, SYSTEM_CLOCK
from .config import AuthConfig
from .database import Database
from .delivery import CodeSink
from .maintenance import Janitor
from .otp.generator import CodeGenerator
from .rate_limit.sliding_window import SlidingWindowLimiter
from .service import AuthService
from .stores.base import CredentialStore, IdentityStore
from .stores.memory import InMemoryCredentialStore, InMemoryIdentityStore
from .stores.sql import SqlCredentialStore, SqlIdentityStore
from .tokens import TokenIssuer

logger = structlog.get_logger(__name__)


@dataclass
class AuthComponents:
    """Everything a transport layer needs, built once per process."""
    auth: AuthService
    accounts: AccountService
    janitor: Janitor
    database: Optional[Database] = None

    async def close(self) -> None:
        """Stop the janitor and release the database engine."""
        try:
            await self.janitor.stop()
        finally:
            if self.database is not None:
                await self.database.close()


async def create_auth_service(
    config: Optional[AuthConfig] = None,
    clock: Optional[Clock] = None,
    sink: Optional[CodeSink] = None,
    start_janitor: bool = False,
) -> AuthComponents:
    """
    Build the service graph.

    Args:
        config: Settings (defaults to ``AuthConfig.from_env()``)
        clock: Time source shared by every component
        sink: Code delivery channel (defaults to the log sink)
        start_janitor: Start the background cleanup task immediately

    Returns:
        AuthComponents
    """
    if config is None:
        config = AuthConfig.from_env()
    else:
        config.validate()
    clock = clock or SYSTEM_CLOCK

    database: Optional[Database] = None
    credentials: CredentialStore
    identities: IdentityStore

    if config.uses_sql_storage:
        database = Database(config.database_url)
        await database.create_schema()
        credentials = SqlCredentialStore(database, clock=clock)
        identities = SqlIdentityStore(database, clock=clock)
    else:
        credentials = InMemoryCredentialStore(clock=clock)
        identities = InMemoryIdentityStore(clock=clock)

    limiter = SlidingWindowLimiter(
        rate=config.rate_limit_max_requests,
        window=config.rate_limit_window_seconds,
        clock=clock,
    )
    tokens = TokenIssuer(
        config.jwt_secret,
        algorithm=config.jwt_algorithm,
        ttl_seconds=config.token_ttl_seconds,
        clock=clock,
    )

    auth = AuthService(
        limiter=limiter,
        credentials=credentials,
        identities=identities,
        tokens=tokens,
        generator=CodeGenerator(config.code_length),
        sink=sink,
        clock=clock,
        code_ttl_seconds=config.code_ttl_seconds,
        store_timeout=config.store_timeout_seconds,
    )
    janitor = Janitor(limiter, credentials, interval=config.janitor_interval)
    if start_janitor:
        janitor.start()

    logger.info(
        "Auth service ready",
        storage=config.storage_type,
        rate_limit=config.rate_limit_max_requests,
        window=config.rate_limit_window_seconds,
    )
    return AuthComponents(
        auth=auth,
        accounts=AccountService(identities),
        janitor=janitor,
        database=database,
    )
