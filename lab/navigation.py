"""
Route table of the portal.

Each role works inside one area (``/dashboard``, ``/employee`` ...).  An
area lists its pages as :class:`RouteDescriptor` objects; the page view is
referenced by dotted path and only imported the first time it is
dispatched.

Resolving a path runs the guards in order: role gate for the area, then
the route-level feature flag with the area's fallback path.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from django.utils.module_loading import import_string

from .features import Feature
from .guards import GuardDecision, feature_route, role_guard
from .roles import Role, home_path
from .session import SessionContext

PAGES = 'lab.views.pages.'


@dataclass(frozen=True)
class RouteDescriptor:
    path: str
    view: str
    feature: Optional[Feature] = None

    def load(self) -> Callable:
        return load_view(self.view)


@dataclass(frozen=True)
class Area:
    prefix: str
    roles: frozenset
    fallback_path: str
    routes: tuple

    @property
    def name(self) -> str:
        return self.prefix.strip('/')

    def route(self, segment: str) -> Optional[RouteDescriptor]:
        segment = segment or 'home'
        for r in self.routes:
            if r.path == segment:
                return r
        return None


def _r(path: str, view: str, feature: Optional[Feature] = None) -> RouteDescriptor:
    return RouteDescriptor(path, PAGES + view, feature)


HOME = _r('home', 'home_page')
STATS_HOME = _r('home', 'home_page', Feature.STATS)
SETTINGS = _r('settings', 'settings_page')
CASES = _r('cases', 'cases_page', Feature.CASES)
PATIENTS = _r('patients', 'patients_page', Feature.PATIENTS)
USERS = _r('users', 'users_page', Feature.USERS)
CHANGELOG = _r('changelog', 'changelog_page', Feature.CHANGE_HISTORY)

DASHBOARD_ROUTES = (
    STATS_HOME,
    _r('stats', 'stats_page', Feature.STATS),
    _r('reports', 'reports_page', Feature.REPORTS),
    USERS,
    CASES,
    PATIENTS,
    CHANGELOG,
    _r('medical-form', 'medical_form_page'),
    SETTINGS,
)

AREAS: tuple[Area, ...] = (
    Area('/dashboard', frozenset({Role.OWNER, Role.MEDICOWNER}), '/dashboard/home', DASHBOARD_ROUTES),
    Area('/employee', frozenset({Role.EMPLOYEE}), '/employee/home', (
        HOME,
        _r('form', 'registration_form_page', Feature.FORM),
        _r('records', 'cases_page', Feature.CASES),
        PATIENTS,
        CHANGELOG,
        USERS,
        SETTINGS,
    )),
    Area('/medic', frozenset({Role.RESIDENTE}), '/medic/home', (HOME, CASES, USERS, SETTINGS)),
    Area('/cito', frozenset({Role.CITOTECNO}), '/cito/cases', (HOME, CASES, USERS, SETTINGS)),
    Area('/patolo', frozenset({Role.PATOLOGO}), '/patolo/home', (HOME, CASES, SETTINGS)),
    Area('/imagenologia', frozenset({Role.IMAGENOLOGIA}), '/imagenologia/cases', (HOME, CASES, PATIENTS, USERS, SETTINGS)),
    Area('/medico-tratante', frozenset({Role.MEDICO_TRATANTE}), '/medico-tratante/home', (HOME, CASES, PATIENTS, USERS, SETTINGS)),
    Area('/enfermero', frozenset({Role.ENFERMERO}), '/enfermero/cases', (HOME, CASES, PATIENTS, SETTINGS)),
    Area('/call-center', frozenset({Role.CALL_CENTER}), '/call-center/home', (
        HOME,
        _r('registros', 'call_center_page'),
        CASES,
        PATIENTS,
        USERS,
        SETTINGS,
    )),
    Area('/prueba', frozenset({Role.PRUEBA}), '/prueba/home', DASHBOARD_ROUTES),
)

AREAS_BY_NAME: dict[str, Area] = {a.name: a for a in AREAS}


def _check_areas() -> None:
    covered = set().union(*(a.roles for a in AREAS))
    missing = [r.value for r in Role if r not in covered]
    if missing:
        raise ImportError(f"no navigation area for roles: {', '.join(missing)}")


_check_areas()

_views: dict[str, Callable] = {}


def load_view(dotted: str) -> Callable:
    view = _views.get(dotted)
    if view is None:
        view = _views[dotted] = import_string(dotted)
    return view


def areas_for(role: Optional[Role]) -> list[Area]:
    return [a for a in AREAS if role in a.roles]


def split_path(path: str) -> tuple[str, str]:
    parts = [p for p in (path or '').split('/') if p]
    area = parts[0] if parts else ''
    segment = parts[1] if len(parts) > 1 else ''
    return area, segment


@dataclass(frozen=True)
class Resolution:
    decision: GuardDecision
    area: Optional[Area] = None
    route: Optional[RouteDescriptor] = None


def resolve(session: SessionContext, area_name: str, segment: str = '') -> Resolution:
    area = AREAS_BY_NAME.get(area_name)
    if area is None:
        decision = role_guard(session)
        if decision.allowed:
            decision = GuardDecision.redirect(home_path(session.role), 'unknown_route')
        return Resolution(decision)

    decision = role_guard(session, area.roles)
    if not decision.allowed:
        return Resolution(decision, area)

    route = area.route(segment)
    if route is None:
        return Resolution(GuardDecision.redirect(area.fallback_path, 'unknown_route'), area)
    return Resolution(feature_route(session, route.feature, area.fallback_path), area, route)


def resolve_path(session: SessionContext, path: str) -> Resolution:
    return resolve(session, *split_path(path))


def navigation_for(session: SessionContext) -> dict:
    """Routes of the caller's own area(s), each marked enabled or not for the tenant."""
    role = session.role
    areas = []
    for area in areas_for(role):
        routes = []
        for route in area.routes:
            decision = feature_route(session, route.feature, area.fallback_path)
            routes.append({
                'path': f'{area.prefix}/{route.path}',
                'feature': route.feature.value if route.feature else None,
                'enabled': decision.allowed,
            })
        areas.append({'prefix': area.prefix, 'fallback': area.fallback_path, 'routes': routes})
    return {'role': role.value if role else None, 'home': home_path(role), 'areas': areas}
