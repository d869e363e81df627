"""
Maintenance
===========
Optional background janitor that reclaims memory held by idle rate-limit
windows and expired credentials.

Expiry and admission are decided at read time, so stopping the janitor
never changes an outcome; it only bounds memory.
"""

import asyncio
from typing import Dict, Optional
import structlog

from .errors import StoreError
from .rate_limit.sliding_window import RateLimiter
from .stores.base import CredentialStore

logger = structlog.get_logger(__name__)


class Janitor:
    """
    Periodic cleanup task.

    Example:
        janitor = Janitor(limiter, credentials, interval=600)
        janitor.start()
        ...
        await janitor.stop()
    """

    def __init__(
        self,
        limiter: Optional[RateLimiter] = None,
        credentials: Optional[CredentialStore] = None,
        interval: float = 600,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.limiter = limiter
        self.credentials = credentials
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Dict[str, int]:
        """Run a single cleanup pass."""
        stats = {"windows_dropped": 0, "credentials_purged": 0}

        if self.limiter is not None:
            stats["windows_dropped"] = await self.limiter.sweep()

        if self.credentials is not None:
            try:
                stats["credentials_purged"] = await self.credentials.purge_expired()
            except StoreError as e:
                # next pass retries; reads still ignore expired rows
                logger.warning("Credential purge failed", error=str(e))

        logger.debug("Janitor pass finished", **stats)
        return stats

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Janitor pass failed")

    def start(self) -> None:
        """Schedule the cleanup loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("Janitor started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel the cleanup loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Janitor stopped")
