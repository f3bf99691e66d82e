"""
Reconnection backoff with jitter.
"""

import asyncio
import logging
import random

logger = logging.getLogger(__name__)


class ReconnectionManager:
    """
    Paces reconnection attempts.

    Delays double from initial_backoff up to max_backoff, and each wait adds
    a random extra of up to jitter * delay so that many clients dropped at
    once do not reconnect in lockstep. The counter resets on success.
    """

    def __init__(
        self,
        initial_backoff: float = 1.0,
        max_backoff: float = 60.0,
        jitter: float = 0.1,
        max_attempts: int = 0,
    ):
        """
        Args:
            initial_backoff: First delay in seconds
            max_backoff: Cap on the delay in seconds
            jitter: Fraction of the delay added at random
            max_attempts: Attempts before giving up (0 = unlimited)
        """
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._jitter = jitter
        self._max_attempts = max_attempts

        self._attempts = 0
        self._current_backoff = initial_backoff

    def next_delay(self) -> float:
        """Delay for the upcoming attempt, jitter included."""
        return self._current_backoff + random.uniform(0, self._jitter * self._current_backoff)

    async def wait_before_reconnect(self) -> bool:
        """
        Sleep before the next attempt.

        Returns:
            True if another attempt may be made, False once max_attempts is used up
        """
        self._attempts += 1

        if self._max_attempts > 0 and self._attempts > self._max_attempts:
            logger.error(f"Max reconnection attempts ({self._max_attempts}) exceeded")
            return False

        delay = self.next_delay()
        logger.info(
            f"Reconnection attempt {self._attempts}"
            + (f"/{self._max_attempts}" if self._max_attempts > 0 else "")
            + f" in {delay:.1f}s"
        )
        await asyncio.sleep(delay)

        self._current_backoff = min(self._current_backoff * 2.0, self._max_backoff)
        return True

    def reset(self) -> None:
        """Forget previous failures after a successful reconnection."""
        if self._attempts > 0:
            logger.info(f"Reconnected after {self._attempts} attempts")

        self._attempts = 0
        self._current_backoff = self._initial_backoff

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def current_backoff(self) -> float:
        return self._current_backoff
