"""
Rate limited warnings and progress logging for long cell sweeps.
"""

import logging
import threading
from typing import Optional

from .config import PROGRESS_INTERVAL, WARNING_LIMIT


class WarningRateLimiter:
    """
    Logs the first `limit` warnings, then a single notice and nothing more.

    One limiter is shared by all workers of a sweep, so counting is guarded
    by a lock. Pass a fresh instance (or a custom logger) to isolate tests.
    """

    def __init__(self, limit: int = WARNING_LIMIT, logger: Optional[logging.Logger] = None):
        self.limit = limit
        self.logger = logger or logging.getLogger(__name__)
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        """Number of warnings reported so far, logged or not."""
        return self._count

    @property
    def suppressed(self) -> int:
        return max(0, self._count - self.limit)

    def warn(self, msg: str, *args) -> bool:
        """
        Report a warning.

        Returns:
            True if the message was logged, False if it was suppressed
        """
        with self._lock:
            self._count += 1
            count = self._count

        if count <= self.limit:
            self.logger.warning(msg, *args)
            if count == self.limit:
                self.logger.warning("Reached %d warnings, suppressing further ones", self.limit)
            return True
        return False

    def reset(self):
        with self._lock:
            self._count = 0


class ProgressCounter:
    """Thread safe counter logging every `interval` increments."""

    def __init__(self, total: int, interval: int = PROGRESS_INTERVAL,
                 label: str = "cells", logger: Optional[logging.Logger] = None):
        self.total = total
        self.interval = interval
        self.label = label
        self.logger = logger or logging.getLogger(__name__)
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def increment(self, n: int = 1):
        with self._lock:
            before = self._count
            self._count += n
            after = self._count

        if after // self.interval > before // self.interval:
            self.logger.info("Processed %d of %d %s", after, self.total, self.label)
