"""
DRF permission classes built on the navigation guards.

A denied guard raises :class:`lab.exceptions.GuardDenied`, which the API
exception handler turns into a 403 carrying the path the client should
navigate to instead.
"""
from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission

from .exceptions import GuardDenied, TenantUnavailable
from .features import Feature
from .guards import LOADING, feature_route, role_guard
from .roles import Role, home_path
from .session import session_for


def _authenticated(request) -> bool:
    user = getattr(request, 'user', None)
    return bool(user and user.is_authenticated)


class HasProfile(BasePermission):
    """Authenticated and bound to a laboratory through a profile."""
    allowed_roles: Optional[frozenset] = None

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if not _authenticated(request):
            return False
        decision = role_guard(session_for(request), self.allowed_roles)
        if decision.outcome == LOADING:
            raise TenantUnavailable()
        if not decision.allowed:
            raise GuardDenied(decision)
        return True


def RoleRequired(*roles: Role) -> type[BasePermission]:
    """``@permission_classes([RoleRequired(Role.OWNER, Role.EMPLOYEE)])``"""
    name = 'RoleRequired_' + '_'.join(r.value for r in roles)
    return type(name, (HasProfile,), {'allowed_roles': frozenset(roles)})


class _FeaturePermission(BasePermission):
    feature: Optional[Feature] = None

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if not _authenticated(request):
            return False
        ctx = session_for(request)
        decision = feature_route(ctx, self.feature, home_path(ctx.role))
        if decision.outcome == LOADING:
            raise TenantUnavailable()
        if not decision.allowed:
            raise GuardDenied(decision)
        return True


def FeatureRequired(feature: Feature) -> type[BasePermission]:
    """Tenant feature flag gate; applies to every role."""
    return type(f'FeatureRequired_{feature.value}', (_FeaturePermission,), {'feature': feature})
