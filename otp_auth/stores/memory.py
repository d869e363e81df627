"""
In-Memory Stores
================
Process-local credential and identity stores.
"""

import uuid
from typing import Dict, List, Optional, Tuple
import structlog

from ..accounts.models import Account
from ..clock import Clock, SYSTEM_CLOCK
from ..errors import AccountAlreadyExists, AccountNotFound, CredentialNotFound
from ..identity import mask_phone
from ..locks import KeyedLock
from ..otp.models import OneTimeCredential
from .base import CredentialStore, IdentityStore

logger = structlog.get_logger(__name__)


class InMemoryCredentialStore(CredentialStore):
    """
    Credential store keyed by identity.

    Every mutation and every consume runs under a per-identity lock.
    Expired entries are treated as absent on read and removed lazily.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SYSTEM_CLOCK
        self._credentials: Dict[str, OneTimeCredential] = {}
        self._locks = KeyedLock()

    async def put(self, credential: OneTimeCredential) -> None:
        async with self._locks.hold(credential.identity):
            self._credentials[credential.identity] = credential

    async def get(self, identity: str) -> OneTimeCredential:
        async with self._locks.hold(identity):
            return self._live(identity)

    async def consume(self, identity: str) -> OneTimeCredential:
        async with self._locks.hold(identity):
            credential = self._live(identity)
            del self._credentials[identity]
            return credential

    async def delete(self, identity: str) -> None:
        async with self._locks.hold(identity):
            self._credentials.pop(identity, None)

    async def purge_expired(self) -> int:
        now = self.clock.now()
        removed = 0
        for identity in list(self._credentials):
            async with self._locks.hold(identity):
                credential = self._credentials.get(identity)
                if credential is not None and credential.is_expired(now):
                    del self._credentials[identity]
                    removed += 1
        return removed

    def _live(self, identity: str) -> OneTimeCredential:
        """Return the live credential; caller holds the identity lock."""
        credential = self._credentials.get(identity)
        if credential is None:
            raise CredentialNotFound(identity)
        if credential.is_expired(self.clock.now()):
            del self._credentials[identity]
            raise CredentialNotFound(identity)
        return credential

    def __len__(self) -> int:
        return len(self._credentials)

    def __bool__(self) -> bool:
        # an empty store is still a store
        return True


class InMemoryIdentityStore(IdentityStore):
    """Account store with a unique identity index."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SYSTEM_CLOCK
        self._accounts: Dict[uuid.UUID, Account] = {}
        self._by_identity: Dict[str, uuid.UUID] = {}
        self._locks = KeyedLock()

    async def find_by_identity(self, identity: str) -> Account:
        account_id = self._by_identity.get(identity)
        if account_id is None:
            raise AccountNotFound(identity)
        return self._accounts[account_id]

    async def get_by_id(self, account_id: uuid.UUID) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(str(account_id))
        return account

    async def create(self, identity: str) -> Account:
        async with self._locks.hold(identity):
            if identity in self._by_identity:
                raise AccountAlreadyExists(identity)

            now = self.clock.now()
            account = Account(
                id=uuid.uuid4(),
                identity=identity,
                created_at=now,
                updated_at=now,
            )
            self._accounts[account.id] = account
            self._by_identity[identity] = account.id

        logger.info("Account created", account_id=str(account.id), identity=mask_phone(identity))
        return account

    async def list(
        self,
        limit: int,
        offset: int,
        search: Optional[str] = None,
    ) -> Tuple[List[Account], int]:
        matches = [
            account for account in self._accounts.values()
            if not search or search in account.identity
        ]
        matches.sort(key=lambda a: (a.created_at, str(a.id)), reverse=True)
        return matches[offset:offset + limit], len(matches)
