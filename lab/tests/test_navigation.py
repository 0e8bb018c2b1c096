import pytest
from django.urls import reverse

from lab.models import CallCenterRecord
from lab.roles import Role

from .factories import make_case, make_lab, make_user

pytestmark = pytest.mark.django_db


def test_navigation_lists_own_area(lab, client_for):
    client = client_for(make_user(lab, Role.EMPLOYEE))
    r = client.get(reverse('navigation'))
    assert r.status_code == 200
    assert r.data['role'] == 'employee'
    assert r.data['home'] == '/employee/home'
    assert [a['prefix'] for a in r.data['areas']] == ['/employee']


def test_page_in_other_area_is_denied_with_redirect(lab, client_for):
    client = client_for(make_user(lab, Role.EMPLOYEE))
    r = client.get(reverse('page', args=['dashboard', 'cases']))
    assert r.status_code == 403
    assert r.data['ok'] is False
    assert r.data['error']['code'] == 'role_not_allowed'
    assert r.data['error']['redirect'] == '/employee/home'


def test_disabled_feature_redirects_to_area_fallback(db, client_for):
    lab = make_lab(features={'hasStats': True, 'hasReports': False})
    client = client_for(make_user(lab, Role.OWNER))
    r = client.get(reverse('page', args=['dashboard', 'reports']))
    assert r.status_code == 403
    assert r.data['error']['code'] == 'feature_disabled'
    assert r.data['error']['redirect'] == '/dashboard/home'


def test_dashboard_home_includes_stats(lab, owner, client_for):
    make_case(lab, 'B1', 'Biopsia', 'Centro')
    r = client_for(owner).get(reverse('page_index', args=['dashboard']))
    assert r.status_code == 200
    assert r.data['page'] == '/dashboard/home'
    assert r.data['data']['stats']['totalCases'] == 1


def test_inline_stats_block_hidden_without_flag(db, client_for):
    lab = make_lab(features={})
    r = client_for(make_user(lab, Role.EMPLOYEE)).get(reverse('page', args=['employee', 'home']))
    assert r.status_code == 200
    assert 'stats' not in r.data['data']
    assert r.data['data']['laboratory']['slug'] == lab.slug


def test_test_role_bypasses_inline_guard_but_not_route_guard(db, client_for):
    lab = make_lab(features={'hasStats': False})
    client = client_for(make_user(lab, Role.PRUEBA))
    # dashboard home itself is behind hasStats for the test role too
    r = client.get(reverse('page', args=['prueba', 'home']))
    assert r.status_code == 403
    assert r.data['error']['redirect'] == '/prueba/home'
    r = client.get(reverse('page', args=['prueba', 'settings']))
    assert r.status_code == 200
    assert r.data['data']['profile']['role'] == 'prueba'


def test_cases_page_is_paginated(lab, client_for):
    for i in range(3):
        make_case(lab, f'B{i}', 'Biopsia', 'Centro')
    r = client_for(make_user(lab, Role.RESIDENTE, branch='Centro')).get(
        reverse('page', args=['medic', 'cases']), {'pageSize': 2},
    )
    assert r.status_code == 200
    assert r.data['data']['count'] == 3
    assert len(r.data['data']['data']) == 2
    assert r.data['data']['totalPages'] == 2


def test_resolve_navigation(lab, client_for):
    client = client_for(make_user(lab, Role.RESIDENTE))
    r = client.get(reverse('navigation_resolve'), {'path': '/medic/cases'})
    assert r.status_code == 200
    assert r.data['decision'] == 'render'
    assert r.data['feature'] == 'hasCases'
    r = client.get(reverse('navigation_resolve'), {'path': '/call-center/registros'})
    assert r.data['decision'] == 'redirect'
    assert r.data['redirect'] == '/medic/cases'


def test_laboratory_module_settings(db, client_for):
    lab = make_lab(config={'modules': {'registrationForm': {
        'fields': {'cedula': {'required': True}, 'email': {'enabled': False}},
        'settings': {'defaultBranch': 'Centro'},
    }}})
    client = client_for(make_user(lab, Role.EMPLOYEE))
    r = client.get(reverse('laboratory_module', args=['registrationForm']))
    assert r.status_code == 200
    assert r.data['data']['fields'] == {
        'cedula': {'enabled': True, 'required': True},
        'email': {'enabled': False, 'required': False},
    }
    assert r.data['data']['settings'] == {'defaultBranch': 'Centro'}
    r = client.get(reverse('laboratory_module', args=['chatAI']))
    assert r.status_code == 404


def test_laboratory_payload(db, client_for):
    lab = make_lab(branding={'phone': '0414-1234567', 'primaryColor': '#123456'})
    r = client_for(make_user(lab, Role.OWNER)).get(reverse('laboratory'))
    assert r.status_code == 200
    assert r.data['data']['slug'] == lab.slug
    assert r.data['data']['config']['branches'] == ['Centro', 'Norte']
    assert r.data['data']['features']['hasCases'] is True


def test_session_branding_roundtrip(lab, owner, client_for):
    client = client_for(owner)
    assert client.get(reverse('session_branding')).data['branding'] == lab.slug
    r = client.post(reverse('session_branding'), {'branding': 'conspat'}, format='json')
    assert r.data['branding'] == 'conspat'
    assert client.get(reverse('session_branding')).data['branding'] == 'conspat'


def test_call_center_records(lab, client_for):
    client = client_for(make_user(lab, Role.CALL_CENTER))
    r = client.post(reverse('call_center_records'), {
        'nombre_apellido': ' María <b>López</b> ',
        'telefono_1': '0414-1234567',
        'telefono_2': '',
        'motivo_llamada': 'Consulta de resultados',
    }, format='json')
    assert r.status_code == 201, r.data
    rec = CallCenterRecord.objects.get()
    assert rec.telefono_2 is None
    assert rec.laboratory_id == lab.id
    r = client.get(reverse('call_center_records'))
    assert [row['motivo_llamada'] for row in r.data['data']] == ['Consulta de resultados']


def test_call_center_records_role_gate(lab, client_for):
    r = client_for(make_user(lab, Role.EMPLOYEE)).get(reverse('call_center_records'))
    assert r.status_code == 403
    assert r.data['error']['redirect'] == '/employee/home'
    # test role passes role gates
    r = client_for(make_user(lab, Role.PRUEBA)).get(reverse('call_center_records'))
    assert r.status_code == 200


def test_changelog_requires_flag(db, client_for):
    lab = make_lab(features={'hasChangeHistory': False})
    r = client_for(make_user(lab, Role.OWNER)).get(reverse('changelog'))
    assert r.status_code == 403
    assert r.data['error']['code'] == 'feature_disabled'


def test_unauthenticated_request(db):
    from rest_framework.test import APIClient
    r = APIClient().get(reverse('navigation'))
    assert r.status_code in (401, 403)
    assert r.data['ok'] is False


def test_healthz(db, client):
    r = client.get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json()['db'] is True
