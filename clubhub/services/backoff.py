"""
Backoff Scheduler.

Exponential backoff for the profile fetch-retry loop.  The gap between
"identity session created" and "profile row visible" is a short,
bounded replication lag, so the policy is a fixed settle delay before
the first read, then ``base * 2**attempt`` between reads, up to a fixed
attempt ceiling.

With the reference settings (5 attempts, settle 2s, base 1s) a
reconciliation that never finds the row waits 2s, then 2s, 4s, 8s and
16s between the five reads.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from clubhub.config import AppConfig

SleepFn = Callable[[float], Awaitable[None]]


class BackoffScheduler:
    """Computes retry delays and suspends the caller for them.

    Parameters
    ----------
    max_attempts:
        Total number of fetch attempts before the loop gives up.
    base_delay_s:
        Multiplier for the exponential delay.
    settle_delay_s:
        Fixed wait before the first attempt of a post-sign-in loop.
    sleep:
        Awaitable sleep function; injectable so tests never wait for real.
    """

    _MAX_DELAY_S: float = 60.0

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay_s: float = 1.0,
        settle_delay_s: float = 2.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts: int = max_attempts
        self.base_delay_s: float = base_delay_s
        self.settle_delay_s: float = settle_delay_s
        self._sleep: SleepFn = sleep

    @classmethod
    def from_config(cls, config: AppConfig, sleep: SleepFn = asyncio.sleep) -> "BackoffScheduler":
        return cls(
            max_attempts=config.PROFILE_FETCH_MAX_ATTEMPTS,
            base_delay_s=config.PROFILE_BACKOFF_BASE_S,
            settle_delay_s=config.PROFILE_SETTLE_DELAY_S,
            sleep=sleep,
        )

    def delay_for(self, attempt_number: int) -> float:
        """Delay to wait after *attempt_number* failed attempts."""
        return min(self.base_delay_s * (2 ** attempt_number), self._MAX_DELAY_S)

    def has_attempts_left(self, attempts_made: int) -> bool:
        return attempts_made < self.max_attempts

    async def settle(self) -> None:
        if self.settle_delay_s > 0:
            await self._sleep(self.settle_delay_s)

    async def wait(self, attempt_number: int) -> float:
        """Suspend for ``delay_for(attempt_number)`` and return the delay used."""
        delay = self.delay_for(attempt_number)
        await self._sleep(delay)
        return delay
