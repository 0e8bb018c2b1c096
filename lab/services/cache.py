"""
Namespaced cache keys.

Each listing family lives under a namespace whose version number is part
of every key.  Invalidating a namespace bumps the version; old entries
are never read again and expire on their own TTL.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Callable

from django.conf import settings
from django.core.cache import cache

MEDICAL_CASES = 'medical-cases'
DASHBOARD_STATS = 'dashboard-stats'
LABORATORY = 'laboratory'
CHANGE_LOGS = 'change-logs'
CALL_CENTER = 'call-center'

NAMESPACES = (MEDICAL_CASES, DASHBOARD_STATS, LABORATORY, CHANGE_LOGS, CALL_CENTER)


def _version_key(namespace: str) -> str:
    return f'ns:{namespace}:version'


def namespace_version(namespace: str) -> int:
    key = _version_key(namespace)
    version = cache.get(key)
    if version is None:
        cache.add(key, 1, None)
        version = cache.get(key) or 1
    return int(version)


def invalidate(namespace: str) -> int:
    key = _version_key(namespace)
    try:
        return cache.incr(key)
    except ValueError:
        # key missing or evicted
        cache.set(key, namespace_version(namespace) + 1, None)
        return cache.get(key)


def versioned_key(namespace: str, *parts: Any) -> str:
    raw = json.dumps(parts, sort_keys=True, default=str)
    digest = hashlib.sha1(raw.encode('utf-8')).hexdigest()
    return f'{namespace}:v{namespace_version(namespace)}:{digest}'


def cached(namespace: str, parts: tuple, producer: Callable[[], Any], ttl: int | None = None):
    key = versioned_key(namespace, *parts)
    value = cache.get(key)
    if value is not None:
        return value
    value = producer()
    cache.set(key, value, settings.CACHE_TTL if ttl is None else ttl)
    return value
