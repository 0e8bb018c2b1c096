"""
Bounded retry with cooperative cancellation.

Used for waiting on work done elsewhere (the PDF webhook) without an
open-ended polling loop.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CancelToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


class RetryCancelled(Exception):
    pass


class BoundedRetry:
    def __init__(self, attempts: int, delay: float, cancel: Optional[CancelToken] = None):
        if attempts < 1:
            raise ValueError('attempts must be >= 1')
        self.attempts = attempts
        self.delay = delay
        self.cancel = cancel or CancelToken()
        self.attempts_made = 0

    def run(self, probe: Callable[[int], Optional[T]]) -> Optional[T]:
        """Call ``probe(attempt)`` until it returns something other than None.

        Returns None once the attempts are exhausted.  Raises
        :class:`RetryCancelled` if the token is cancelled before or
        between attempts.
        """
        for attempt in range(1, self.attempts + 1):
            if self.cancel.cancelled:
                raise RetryCancelled()
            self.attempts_made = attempt
            result = probe(attempt)
            if result is not None:
                return result
            if attempt < self.attempts and self.cancel.wait(self.delay):
                raise RetryCancelled()
        logger.info('Gave up after %d attempts', self.attempts)
        return None
