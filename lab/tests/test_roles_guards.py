from types import SimpleNamespace

import pytest

from lab.features import Feature
from lab.guards import FALLBACK, LOADING, REDIRECT, RENDER, feature_guard, feature_route, role_guard
from lab.navigation import AREAS, navigation_for, resolve, resolve_path, split_path
from lab.roles import ROLE_EXAM_TYPES, ROLE_HOME_PATHS, Role, allowed_exam_types, canonical_exam_type, home_path
from lab.session import MemoryPersistence, SessionContext

USER = SimpleNamespace(is_authenticated=True, pk=1)


def session(role=None, features=None, branch=None, lab=True, **flags):
    profile = SimpleNamespace(role=role.value, assigned_branch=branch) if role else None
    laboratory = SimpleNamespace(id='lab-1', features=features or {}) if lab else None
    return SessionContext(user=USER, profile=profile, laboratory=laboratory, **flags)


def test_role_tables_cover_every_role():
    for role in Role:
        assert role in ROLE_HOME_PATHS
        assert role in ROLE_EXAM_TYPES
        assert any(role in a.roles for a in AREAS)
    assert home_path(None) == '/'


def test_exam_type_aliases():
    assert canonical_exam_type('biopsia') == 'Biopsia'
    assert canonical_exam_type('inmunohistoquimica') == 'Inmunohistoquímica'
    assert canonical_exam_type('Citología') == 'Citología'
    assert allowed_exam_types(Role.RESIDENTE) == {'Biopsia'}
    assert allowed_exam_types(Role.OWNER) is None
    assert allowed_exam_types(None) == frozenset()


def test_role_guard_waits_while_loading():
    d = role_guard(session(Role.OWNER, profile_loading=True), {Role.OWNER})
    assert d.outcome == LOADING


def test_role_guard_unauthenticated_goes_to_entry():
    d = role_guard(SessionContext(), {Role.OWNER})
    assert d.outcome == REDIRECT
    assert d.redirect_to == '/'
    assert d.reason == 'unauthenticated'


def test_role_guard_without_profile_goes_to_entry():
    d = role_guard(session(None), {Role.OWNER})
    assert (d.outcome, d.redirect_to, d.reason) == (REDIRECT, '/', 'no_profile')


def test_role_guard_redirects_to_own_home():
    d = role_guard(session(Role.EMPLOYEE), {Role.OWNER, Role.MEDICOWNER})
    assert d.outcome == REDIRECT
    assert d.redirect_to == '/employee/home'
    assert role_guard(session(Role.OWNER), {Role.OWNER}).outcome == RENDER


def test_role_guard_unknown_role():
    ctx = SessionContext(user=USER, profile=SimpleNamespace(role='admin', assigned_branch=None))
    d = role_guard(ctx, {Role.OWNER})
    assert d.redirect_to == '/'
    assert d.reason == 'unknown_role'


def test_test_role_passes_every_role_gate():
    for area in AREAS:
        assert role_guard(session(Role.PRUEBA), area.roles).allowed


def test_inline_guard_renders_for_test_role_without_flag():
    assert feature_guard(session(Role.PRUEBA, features={}), Feature.STATS).outcome == RENDER


def test_inline_guard_returns_fallback():
    d = feature_guard(session(Role.OWNER, features={'hasStats': False}), Feature.STATS, fallback='upgrade')
    assert d.outcome == FALLBACK
    assert d.fallback == 'upgrade'
    assert feature_guard(session(Role.OWNER, features={'hasStats': True}), Feature.STATS).allowed


def test_inline_guard_without_laboratory_falls_back():
    assert feature_guard(session(Role.OWNER, lab=False), Feature.STATS).outcome == FALLBACK


def test_route_guard_applies_to_test_role():
    d = feature_route(session(Role.PRUEBA, features={}), Feature.STATS, '/prueba/home')
    assert d.outcome == REDIRECT
    assert d.redirect_to == '/prueba/home'


def test_route_guard_flag_must_be_true():
    ctx = session(Role.OWNER, features={'hasCases': 'yes'})
    assert feature_route(ctx, Feature.CASES, '/dashboard/home').outcome == REDIRECT
    ctx = session(Role.OWNER, features={'hasCases': True})
    assert feature_route(ctx, Feature.CASES, '/dashboard/home').outcome == RENDER


@pytest.mark.parametrize('feature,expected', [
    (Feature.CASES, LOADING),
    (Feature.PATIENTS, LOADING),
    (Feature.STATS, REDIRECT),
])
def test_route_guard_holds_only_listed_features_without_laboratory(feature, expected):
    ctx = session(Role.OWNER, lab=False)
    assert feature_route(ctx, feature, '/dashboard/home').outcome == expected


def test_route_guard_loading_laboratory():
    ctx = session(Role.OWNER, laboratory_loading=True)
    assert feature_route(ctx, Feature.STATS, '/dashboard/home').outcome == LOADING


def test_route_without_feature_always_renders():
    assert feature_route(session(Role.OWNER, lab=False), None, '/x').allowed


def test_as_dict():
    d = role_guard(session(Role.EMPLOYEE), {Role.OWNER})
    assert d.as_dict() == {'decision': 'redirect', 'redirect': '/employee/home', 'reason': 'role_not_allowed'}


def test_split_path():
    assert split_path('/medic/cases') == ('medic', 'cases')
    assert split_path('/call-center') == ('call-center', '')
    assert split_path('') == ('', '')


def test_resolve_route_in_own_area():
    res = resolve_path(session(Role.RESIDENTE, features={'hasCases': True}), '/medic/cases')
    assert res.decision.allowed
    assert res.route.feature == Feature.CASES
    assert res.route.load().__name__ == 'cases_page'


def test_resolve_other_area_bounces_home():
    res = resolve(session(Role.CITOTECNO), 'dashboard', 'cases')
    assert res.decision.redirect_to == '/cito/cases'
    assert res.decision.reason == 'role_not_allowed'


def test_resolve_unknown_segment_uses_area_fallback():
    res = resolve(session(Role.ENFERMERO), 'enfermero', 'nope')
    assert res.decision.redirect_to == '/enfermero/cases'
    assert res.decision.reason == 'unknown_route'


def test_resolve_unknown_area():
    res = resolve(session(Role.PATOLOGO), 'hospital', '')
    assert res.decision.redirect_to == '/patolo/cases'
    assert res.area is None


def test_resolve_disabled_feature_uses_area_fallback():
    res = resolve(session(Role.IMAGENOLOGIA, features={}), 'imagenologia', 'patients')
    assert res.decision.redirect_to == '/imagenologia/cases'
    assert res.decision.reason == 'feature_disabled'


def test_empty_segment_is_home():
    res = resolve(session(Role.EMPLOYEE), 'employee', '')
    assert res.decision.allowed
    assert res.route.path == 'home'


def test_navigation_marks_disabled_routes():
    nav = navigation_for(session(Role.EMPLOYEE, features={'hasCases': True}))
    assert nav['role'] == 'employee'
    assert nav['home'] == '/employee/home'
    routes = {r['path']: r['enabled'] for r in nav['areas'][0]['routes']}
    assert routes['/employee/records'] is True
    assert routes['/employee/patients'] is False
    assert routes['/employee/settings'] is True


def test_session_context_branch_is_trimmed():
    assert session(Role.RESIDENTE, branch='  Centro ').assigned_branch == 'Centro'
    assert session(Role.RESIDENTE, branch='   ').assigned_branch is None


def test_memory_persistence():
    store = MemoryPersistence({'branding': 'conspat'})
    assert store.load('branding') == 'conspat'
    store.save('mockUserRole', 'owner')
    store.clear('branding')
    assert store.load('branding') is None
    assert store.load('mockUserRole') == 'owner'
