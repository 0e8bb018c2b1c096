"""
Row change notifications.

Model signals of the tracked tables publish a :class:`ChangeEvent` to the
in-process :data:`feed` and to the Channels group ``changes.<table>``
so websocket clients in other processes hear about it too.
"""
from __future__ import annotations

import json
import logging
import operator
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder
from django.db.models.signals import post_delete, post_save

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'
ALL_EVENTS = frozenset({INSERT, UPDATE, DELETE})


class ChannelError(Exception):
    pass


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str
    row: dict = field(default_factory=dict)
    laboratory_id: Optional[str] = None

    def as_message(self) -> dict:
        return {
            'type': 'change.event',
            'table': self.table,
            'event': self.event,
            'row': self.row,
            'laboratory_id': self.laboratory_id,
        }


def _as_number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(op):
    def check(actual, expected):
        a, b = _as_number(actual), _as_number(expected)
        if a is None or b is None:
            a, b = str(actual), str(expected)
        return op(a, b)
    return check


OPERATORS: dict[str, Callable] = {
    'eq': lambda actual, expected: str(actual) == str(expected),
    'neq': lambda actual, expected: str(actual) != str(expected),
    'lt': _compare(operator.lt),
    'lte': _compare(operator.le),
    'gt': _compare(operator.gt),
    'gte': _compare(operator.ge),
    'in': lambda actual, expected: str(actual) in expected,
}


@dataclass(frozen=True)
class ChangeFilter:
    """``column=op.value``, e.g. ``branch=eq.Centro`` or ``exam_type=in.(Biopsia,Citología)``."""
    column: str
    op: str
    value: object

    @classmethod
    def parse(cls, expr: str) -> 'ChangeFilter':
        column, sep, rest = (expr or '').partition('=')
        op, dot, value = rest.partition('.')
        if not sep or not dot or not column or op not in OPERATORS:
            raise ValueError(f'invalid filter expression: {expr!r}')
        if op == 'in':
            value = tuple(v.strip() for v in value.strip('()').split(',') if v.strip())
        return cls(column.strip(), op, value)

    def matches(self, row: dict) -> bool:
        if self.column not in row:
            return False
        return OPERATORS[self.op](row[self.column], self.value)


def parse_events(events) -> frozenset:
    if events in (None, '*'):
        return ALL_EVENTS
    if isinstance(events, str):
        events = [events]
    wanted = frozenset(e.upper() for e in events)
    if '*' in wanted:
        return ALL_EVENTS
    unknown = wanted - ALL_EVENTS
    if unknown:
        raise ValueError(f'unknown events: {sorted(unknown)}')
    return wanted


class Subscription:
    def __init__(self, feed: 'ChangeFeed', table: str, callback, events: frozenset, change_filter: Optional[ChangeFilter]):
        self.feed = feed
        self.table = table
        self.callback = callback
        self.events = events
        self.filter = change_filter
        self.active = True

    def wants(self, event: ChangeEvent) -> bool:
        if event.event not in self.events:
            return False
        return self.filter is None or self.filter.matches(event.row)

    def unsubscribe(self) -> None:
        self.feed.unsubscribe(self)


class ChangeFeed:
    def __init__(self, tables: Optional[Iterable[str]] = None):
        self.tables = frozenset(tables) if tables is not None else None
        self._subs: dict[str, list[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None], *, events='*', change_filter=None) -> Subscription:
        if self.tables is not None and table not in self.tables:
            raise ChannelError(f'no change channel for table {table!r}')
        if isinstance(change_filter, str):
            change_filter = ChangeFilter.parse(change_filter)
        sub = Subscription(self, table, callback, parse_events(events), change_filter)
        with self._lock:
            self._subs[table].append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            sub.active = False
            subs = self._subs.get(sub.table, [])
            if sub in subs:
                subs.remove(sub)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subs.get(table, []))

    def publish(self, event: ChangeEvent) -> int:
        with self._lock:
            subs = [s for s in self._subs.get(event.table, []) if s.active]
        delivered = 0
        for sub in subs:
            if not sub.wants(event):
                continue
            try:
                sub.callback(event)
                delivered += 1
            except Exception:
                logger.exception('Change handler failed for %s %s', event.table, event.event)
        return delivered


def _tracked_models() -> dict:
    from lab.models import CallCenterRecord, ChangeLog, Laboratory, MedicalCase, Patient
    return {m: m._meta.db_table for m in (MedicalCase, Patient, Laboratory, ChangeLog, CallCenterRecord)}


TRACKED_TABLES = ('medical_cases', 'patients', 'laboratories', 'change_logs', 'call_center_records')

# process-wide feed used by the invalidation bridges
feed = ChangeFeed(TRACKED_TABLES)


def group_name(table: str) -> str:
    return f'changes.{table}'


def _row(instance) -> dict:
    data = {f.attname: getattr(instance, f.attname) for f in instance._meta.concrete_fields}
    # plain JSON types so the Redis channel layer can serialize it
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def _laboratory_id(instance) -> Optional[str]:
    from lab.models import Laboratory
    if isinstance(instance, Laboratory):
        return str(instance.pk)
    lab_id = getattr(instance, 'laboratory_id', None)
    return str(lab_id) if lab_id else None


def broadcast(event: ChangeEvent) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(group_name(event.table), event.as_message())
    except Exception as e:
        logger.warning('Could not broadcast %s change on %s: %s', event.event, event.table, e)


def emit(instance, event_name: str) -> ChangeEvent:
    event = ChangeEvent(
        table=instance._meta.db_table,
        event=event_name,
        row=_row(instance),
        laboratory_id=_laboratory_id(instance),
    )
    feed.publish(event)
    broadcast(event)
    return event


def _on_save(sender, instance, created, raw=False, **kwargs):
    if raw:
        return
    emit(instance, INSERT if created else UPDATE)


def _on_delete(sender, instance, **kwargs):
    emit(instance, DELETE)


def connect_signals() -> None:
    for model, table in _tracked_models().items():
        post_save.connect(_on_save, sender=model, dispatch_uid=f'lab.realtime.save.{table}')
        post_delete.connect(_on_delete, sender=model, dispatch_uid=f'lab.realtime.delete.{table}')
