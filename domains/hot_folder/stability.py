"""
Write-completion gate for files dropped into the hot folder.

Directory notifications arrive while the writer is still flushing, so a file
is only consumed once two consecutive samples of (size, mtime) agree.
"""

import os
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from app.models.schemas import StabilityOutcome

Sample = tuple[int, int]


class StabilityDetector:
    """Polls a file until its size and modification time stop changing."""

    def __init__(
        self,
        initial_delay: float = 0.5,
        poll_interval: float = 0.15,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize detector.

        Args:
            initial_delay: Seconds to wait once before the first sample
            poll_interval: Seconds between samples
            timeout: Seconds after which an unsettled file is given up on
            clock: Monotonic time source
            sleep: Blocking sleep; workers are threads, so sleeping is enough
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if timeout < 0 or initial_delay < 0:
            raise ValueError("timeout and initial_delay must not be negative")

        self.initial_delay = initial_delay
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep

    @staticmethod
    def _sample(path: Path) -> Optional[Sample]:
        try:
            stats = os.stat(path)
        except FileNotFoundError:
            return None
        return stats.st_size, stats.st_mtime_ns

    def check(self, path: Path) -> StabilityOutcome:
        """
        Wait until ``path`` is stable, has vanished, or the timeout elapses.

        The timeout is measured from the call, initial delay included, so the
        caller is blocked for at most ``timeout`` plus one sample.
        """
        deadline = self._clock() + self.timeout
        self._sleep(min(self.initial_delay, self.timeout))

        previous: Optional[Sample] = None
        while True:
            current = self._sample(path)
            if current is None:
                logger.debug(f"File disappeared during stability check: {path}")
                return StabilityOutcome(path=path, stable=False)

            if current == previous:
                return StabilityOutcome(
                    path=path,
                    stable=True,
                    final_size=current[0],
                    final_mtime_ns=current[1],
                )
            previous = current

            remaining = deadline - self._clock()
            if remaining <= 0:
                return StabilityOutcome(
                    path=path,
                    stable=False,
                    final_size=current[0],
                    final_mtime_ns=current[1],
                )
            self._sleep(min(self.poll_interval, remaining))

    def is_stable(self, path: Path) -> bool:
        """Shorthand for ``check(path).stable``."""
        return self.check(path).stable
