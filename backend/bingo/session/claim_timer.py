"""Grace period before a rejected bingo claim may be retried."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from shared.dal.exceptions import StoreError

logger = structlog.get_logger()

DEFAULT_CLAIM_GRACE_SECONDS = 3.0

# Callback receiving the attempt number whose latch should be released.
ReleaseCallback = Callable[[int], Awaitable[None]]


class ClaimCooldown:
    """Track claim attempts and release the claim latch after a fixed delay.

    Every claim starts a new attempt. A release only runs for the latest
    attempt, so a timer left over from an earlier rejected claim can never
    clear a latch set by a newer one. cancel() drops the pending release
    (used on reset and shutdown).
    """

    def __init__(
        self,
        on_release: ReleaseCallback,
        grace_seconds: float = DEFAULT_CLAIM_GRACE_SECONDS,
    ) -> None:
        self._on_release = on_release
        self._grace_seconds = grace_seconds
        self._attempt = 0
        self._active_task: asyncio.Task[None] | None = None
        self._releasing = False

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def pending(self) -> bool:
        """True while the grace delay runs; False once the release itself has started."""
        return self._active_task is not None and not self._active_task.done() and not self._releasing

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    def begin_attempt(self) -> int:
        """Start a new claim attempt, dropping any release still pending."""
        self.cancel()
        self._attempt += 1
        return self._attempt

    def schedule_release(self, attempt: int) -> None:
        self.cancel()
        self._active_task = asyncio.create_task(self._run_timer(attempt))

    def cancel(self) -> None:
        if self._active_task is not None and not self._active_task.done():
            self._active_task.cancel()
        self._active_task = None
        self._releasing = False

    async def _run_timer(self, attempt: int) -> None:
        try:
            await asyncio.sleep(self._grace_seconds)
            if attempt != self._attempt:
                logger.debug("stale claim release skipped", attempt=attempt, latest=self._attempt)
                return
            self._releasing = True
            await self._on_release(attempt)
        except asyncio.CancelledError:
            pass
        except StoreError:
            logger.exception("claim latch release failed")
        finally:
            if self._active_task is asyncio.current_task():
                self._releasing = False
