"""
Cache invalidation driven by row changes.

A :class:`RealtimeInvalidation` subscribes to one table of the change
feed after a short startup delay and bumps the version of its cache
namespaces whenever a matching change arrives.  Rows are never merged
into cached data; readers simply refetch.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

from django.conf import settings

from lab.services import cache as lab_cache

from . import feed as feed_module
from .feed import ChangeEvent, ChannelError, ChangeFeed

logger = logging.getLogger(__name__)

# table -> cache namespaces made stale by a change on it
DEFAULT_BRIDGES: dict[str, tuple[str, ...]] = {
    'medical_cases': (lab_cache.MEDICAL_CASES, lab_cache.DASHBOARD_STATS),
    # case rows embed patient columns
    'patients': (lab_cache.MEDICAL_CASES,),
    'laboratories': (lab_cache.LABORATORY,),
    'change_logs': (lab_cache.CHANGE_LOGS,),
    'call_center_records': (lab_cache.CALL_CENTER,),
}


def startup_delay() -> float:
    return settings.REALTIME_STARTUP_DELAY_MS / 1000.0


class RealtimeInvalidation:
    def __init__(
        self,
        table: str,
        cache_keys: Iterable[str],
        filter=None,
        events='*',
        delay: Optional[float] = None,
        feed: Optional[ChangeFeed] = None,
        invalidate: Callable[[str], object] = lab_cache.invalidate,
    ):
        self.table = table
        self.cache_keys = tuple(cache_keys)
        self.filter = filter
        self.events = events
        self.delay = startup_delay() if delay is None else delay
        self.feed = feed or feed_module.feed
        self._invalidate = invalidate
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._subscription = None
        self._stopped = False
        self.invalidations = 0

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    def start(self) -> 'RealtimeInvalidation':
        with self._lock:
            if self._timer is not None or self._subscription is not None:
                return self
            self._stopped = False
            if self.delay > 0:
                self._timer = threading.Timer(self.delay, self._subscribe)
                self._timer.daemon = True
                self._timer.start()
                return self
        self._subscribe()
        return self

    def _subscribe(self) -> None:
        with self._lock:
            self._timer = None
            if self._stopped or self._subscription is not None:
                return
            try:
                self._subscription = self.feed.subscribe(
                    self.table, self._on_change, events=self.events, change_filter=self.filter,
                )
            except ChannelError as e:
                # no retry; the page keeps working without live updates
                logger.warning('Realtime subscription to %s failed: %s', self.table, e)
                return
        logger.debug('Realtime bridge on %s -> %s', self.table, ', '.join(self.cache_keys))

    def _on_change(self, event: ChangeEvent) -> None:
        for namespace in self.cache_keys:
            self._invalidate(namespace)
        self.invalidations += 1

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            timer, self._timer = self._timer, None
            subscription, self._subscription = self._subscription, None
        if timer is not None:
            timer.cancel()
        if subscription is not None:
            subscription.unsubscribe()

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.stop()


_installed: list[RealtimeInvalidation] = []


def install_default_bridges() -> list[RealtimeInvalidation]:
    if _installed:
        return _installed
    for table, namespaces in DEFAULT_BRIDGES.items():
        _installed.append(RealtimeInvalidation(table, namespaces).start())
    return _installed


def uninstall_default_bridges() -> None:
    while _installed:
        _installed.pop().stop()


def active_bridges() -> int:
    return sum(1 for b in _installed if b.subscribed)
