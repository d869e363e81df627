"""
Code Delivery
=============
Sinks that hand a freshly issued code to its delivery channel.
"""

from abc import ABC, abstractmethod
from datetime import datetime
import structlog

logger = structlog.get_logger(__name__)


class CodeSink(ABC):
    """Delivery channel for issued codes."""

    name: str = "base"

    @abstractmethod
    async def deliver(self, identity: str, code: str, expires_at: datetime) -> None:
        """
        Deliver a code to the owner of an identity.

        Args:
            identity: Canonical identity (E.164 phone number)
            code: The one-time code
            expires_at: When the code stops being accepted
        """


class LogCodeSink(CodeSink):
    """
    Writes the code to the log instead of sending an SMS.

    For development and demos only. This is the one place a code is
    written to a log.
    """

    name = "log"

    async def deliver(self, identity: str, code: str, expires_at: datetime) -> None:
        logger.info(
            "OTP issued",
            phone_number=identity,
            otp=code,
            expires_at=expires_at.isoformat(),
        )
