import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from lab.roles import Role

from .factories import make_lab, make_user


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters and versioned entries live in the default cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def lab(db):
    return make_lab()


@pytest.fixture
def owner(lab):
    return make_user(lab, Role.OWNER)


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
