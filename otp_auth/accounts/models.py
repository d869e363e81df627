"""
Account Models
==============
Account records owned by the identity store.
"""

import uuid
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Account:
    """An account resolved from a verified identity."""
    id: uuid.UUID
    identity: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Public view of the account (no updated_at)."""
        return {
            "id": str(self.id),
            "phone_number": self.identity,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AccountPage:
    """One page of an account listing."""
    accounts: List[Account] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "users": [account.to_dict() for account in self.accounts],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }
