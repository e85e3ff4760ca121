"""Cooperative per-file lock built on atomic directory creation.

Only safe within a single process: a holder that outlives the wait limit has
its lock removed, so two processes sharing a data directory can still
interleave writes.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

from housing_dashboard.errors import LockTimeout


logger = logging.getLogger(__name__)

RETRY_INTERVAL = 0.05  # seconds between attempts
MAX_WAIT = 5.0  # seconds before a held lock is treated as abandoned


class DirectoryLock:
    """Async context manager guarding ``<path>.lock``."""

    def __init__(
        self,
        path: Path,
        retry_interval: float = RETRY_INTERVAL,
        max_wait: float = MAX_WAIT,
    ) -> None:
        self.lock_path = Path(f"{path}.lock")
        self.retry_interval = retry_interval
        self.max_wait = max_wait

    async def _wait_for_lock(self) -> None:
        """Spin until the lock directory is created, or raise LockTimeout."""
        deadline = time.monotonic() + self.max_wait
        while True:
            try:
                os.mkdir(self.lock_path)
                return
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise LockTimeout(f"Lock held for over {self.max_wait}s: {self.lock_path}")
                await asyncio.sleep(self.retry_interval)

    async def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            try:
                await self._wait_for_lock()
                return
            except LockTimeout as e:
                logger.warning(f"{e}; removing abandoned lock")
                self._remove()

    def release(self) -> None:
        self._remove()

    def _remove(self) -> None:
        # No owner check: after a forced unlock this can drop the next holder's lock
        try:
            os.rmdir(self.lock_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove lock {self.lock_path}: {e}")

    async def __aenter__(self) -> "DirectoryLock":
        await self.acquire()
        return self

    async def __aexit__(self, *args) -> None:
        self.release()
