"""
Clock
=====
Time sources injected into the limiter, stores, token issuer and service.
"""

import time
from datetime import datetime, timezone


class Clock:
    """
    System clock.

    ``now()`` is wall-clock UTC and is used for anything persisted
    (credential expiry, account timestamps, token claims). ``monotonic()``
    is used for in-process windows that must not jump with the wall clock.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


SYSTEM_CLOCK = Clock()
