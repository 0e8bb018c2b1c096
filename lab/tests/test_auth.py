import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.urls import reverse
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from lab.models import Laboratory, Profile
from lab.roles import Role

from .factories import PASSWORD, make_user

pytestmark = pytest.mark.django_db

User = get_user_model()


def login(client, username, password=PASSWORD):
    return client.post(reverse('login_view'), {'username': username, 'password': password}, format='json')


def test_login_returns_token_jwt_and_home(lab):
    make_user(lab, Role.CITOTECNO, username='cito1')
    r = login(APIClient(), 'cito1')
    assert r.status_code == 200
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'citotecno'
    assert r.data['home'] == '/cito/cases'
    assert r.data['laboratory']['slug'] == lab.slug


def test_login_wrong_password(lab):
    make_user(lab, Role.OWNER, username='owner1')
    r = login(APIClient(), 'owner1', 'nope')
    assert r.status_code == 400
    assert r.data['ok'] is False


def test_token_authenticates_requests(lab):
    make_user(lab, Role.EMPLOYEE, username='emp1')
    client = APIClient()
    token = login(client, 'emp1').data['token']
    client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = client.get(reverse('me_view'))
    assert r.status_code == 200
    assert r.data['user']['username'] == 'emp1'
    assert r.data['home'] == '/employee/home'


def test_jwt_authenticates_requests(lab):
    make_user(lab, Role.PATOLOGO, username='pato1')
    client = APIClient()
    access = login(client, 'pato1').data['jwt_access']
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
    assert client.get(reverse('me_view')).data['role'] == 'patologo'


def test_orphaned_session_is_signed_out(db):
    u = User.objects.create_user(username='ghost', password=PASSWORD)
    token = Token.objects.create(user=u)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    r = client.get(reverse('me_view'))
    assert r.status_code == 401
    assert r.data['error']['code'] == 'orphaned_session'
    assert r.data['error']['redirect'] == '/'
    assert not Token.objects.filter(user=u).exists()


def test_orphaned_login_is_rejected(db):
    User.objects.create_user(username='ghost2', password=PASSWORD)
    r = login(APIClient(), 'ghost2')
    assert r.status_code == 401
    assert r.data['error']['code'] == 'orphaned_session'


def test_logout_blacklists_refresh_tokens(lab):
    make_user(lab, Role.OWNER, username='owner2')
    client = APIClient()
    data = login(client, 'owner2').data
    client.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    r = client.post(reverse('logout_view'), {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1
    assert BlacklistedToken.objects.count() == 1
    assert not Token.objects.filter(key=data['token']).exists()


def test_select_role_disabled_without_mock_auth(settings):
    settings.MOCK_AUTH = False
    r = APIClient().post(reverse('select_role_view'), {'role': 'owner'}, format='json')
    assert r.status_code == 404


def test_select_role_signs_in_as_demo_user(settings):
    settings.MOCK_AUTH = True
    call_command('ensure_test_users')
    client = APIClient()
    r = client.post(reverse('select_role_view'), {'role': 'citotecno'}, format='json')
    assert r.status_code == 200, r.data
    assert r.data['role'] == 'citotecno'
    assert r.data['home'] == '/cito/cases'
    assert r.data['user']['assignedBranch'] == 'Centro'
    # remembered in the session
    assert client.get(reverse('select_role_view')).data['role'] == 'citotecno'


def test_select_role_rejects_unknown_role(settings):
    settings.MOCK_AUTH = True
    r = APIClient().post(reverse('select_role_view'), {'role': 'admin'}, format='json')
    assert r.status_code == 400


def test_ensure_test_users_is_idempotent(db):
    call_command('ensure_test_users')
    call_command('ensure_test_users')
    assert Laboratory.objects.filter(slug='demo').count() == 1
    assert Profile.objects.count() == len(Role)
    assert set(Profile.objects.values_list('role', flat=True)) == {r.value for r in Role}
    assert User.objects.get(username='mock_owner').check_password('123456')
