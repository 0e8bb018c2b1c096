from django.core.cache import cache

from lab.services.cache import CALL_CENTER, LABORATORY, cached, invalidate, namespace_version, versioned_key


def test_key_is_stable_for_same_parts():
    assert versioned_key(LABORATORY, 'row', 1) == versioned_key(LABORATORY, 'row', 1)
    assert versioned_key(LABORATORY, 'row', 1) != versioned_key(LABORATORY, 'row', 2)
    assert versioned_key(LABORATORY, 'row', 1).startswith('laboratory:v1:')


def test_invalidate_changes_every_key_of_namespace():
    before = versioned_key(CALL_CENTER, 'x')
    other = versioned_key(LABORATORY, 'x')
    assert invalidate(CALL_CENTER) == namespace_version(CALL_CENTER)
    assert versioned_key(CALL_CENTER, 'x') != before
    assert versioned_key(LABORATORY, 'x') == other


def test_invalidate_after_eviction():
    v = namespace_version(CALL_CENTER)
    cache.delete(f'ns:{CALL_CENTER}:version')
    assert invalidate(CALL_CENTER) > 1
    assert namespace_version(CALL_CENTER) >= v


def test_cached_calls_producer_once_per_version():
    calls = []

    def produce():
        calls.append(1)
        return {'rows': len(calls)}

    assert cached(CALL_CENTER, ('lab',), produce) == {'rows': 1}
    assert cached(CALL_CENTER, ('lab',), produce) == {'rows': 1}
    invalidate(CALL_CENTER)
    assert cached(CALL_CENTER, ('lab',), produce) == {'rows': 2}
    assert len(calls) == 2
