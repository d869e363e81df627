"""
OTP Models
==========
The one-time credential record held by a credential store.
"""

from datetime import datetime
from dataclasses import dataclass


@dataclass(frozen=True)
class OneTimeCredential:
    """A pending one-time code for a single identity."""
    identity: str
    code: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_live(self, now: datetime) -> bool:
        return not self.is_expired(now)

    def __repr__(self) -> str:
        # never render the code
        return (
            f"OneTimeCredential(identity={self.identity!r}, "
            f"created_at={self.created_at.isoformat()}, "
            f"expires_at={self.expires_at.isoformat()})"
        )
