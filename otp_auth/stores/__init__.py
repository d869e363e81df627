"""
Stores
======
Credential and identity store contracts with in-memory and SQL backends.
"""

from .base import CredentialStore, IdentityStore
from .memory import InMemoryCredentialStore, InMemoryIdentityStore
from .sql import SqlCredentialStore, SqlIdentityStore, AccountRow, CredentialRow

__all__ = [
    # Contracts
    "CredentialStore",
    "IdentityStore",
    # In-memory
    "InMemoryCredentialStore",
    "InMemoryIdentityStore",
    # SQL
    "SqlCredentialStore",
    "SqlIdentityStore",
    "AccountRow",
    "CredentialRow",
]
