"""
Store Contracts
===============
Abstract credential and identity stores.

Implementations must raise the same errors for the same situations so the
service cannot tell an in-memory store from a database-backed one:

- ``CredentialNotFound`` for absent or expired credentials
- ``AccountNotFound`` / ``AccountAlreadyExists`` for account lookups/creation
- ``StoreError`` for any backend failure
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..accounts.models import Account
from ..otp.models import OneTimeCredential


class CredentialStore(ABC):
    """Holds at most one pending credential per identity."""

    @abstractmethod
    async def put(self, credential: OneTimeCredential) -> None:
        """Store a credential, replacing any pending one for the identity."""

    @abstractmethod
    async def get(self, identity: str) -> OneTimeCredential:
        """
        Return the live credential for an identity.

        Raises:
            CredentialNotFound: If absent or expired
        """

    @abstractmethod
    async def consume(self, identity: str) -> OneTimeCredential:
        """
        Atomically fetch and remove the live credential.

        Of two concurrent calls for the same identity exactly one returns
        the credential; the other raises ``CredentialNotFound``.

        Raises:
            CredentialNotFound: If absent, expired or already consumed
        """

    @abstractmethod
    async def delete(self, identity: str) -> None:
        """Remove a credential. Removing an absent credential succeeds."""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Physically remove expired credentials. Returns the number removed."""


class IdentityStore(ABC):
    """Maps identities to accounts."""

    @abstractmethod
    async def find_by_identity(self, identity: str) -> Account:
        """
        Raises:
            AccountNotFound: If no account has this identity
        """

    @abstractmethod
    async def get_by_id(self, account_id: uuid.UUID) -> Account:
        """
        Raises:
            AccountNotFound: If no account has this id
        """

    @abstractmethod
    async def create(self, identity: str) -> Account:
        """
        Create an account for a new identity.

        Raises:
            AccountAlreadyExists: If the identity is already taken
        """

    @abstractmethod
    async def list(
        self,
        limit: int,
        offset: int,
        search: Optional[str] = None,
    ) -> Tuple[List[Account], int]:
        """
        Return a page of accounts, newest first, and the total match count.

        Args:
            limit: Page size
            offset: Number of matching accounts to skip
            search: Substring to match against the identity
        """
