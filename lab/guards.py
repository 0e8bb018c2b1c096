"""
Navigation guards.

Three guards with deliberately different bypass rules:

* :func:`role_guard` - authentication + role allow-list.  The universal
  test role passes every allow-list.
* :func:`feature_guard` - inline guard around a piece of a page.  The
  universal test role sees everything.
* :func:`feature_route` - guard around a whole route.  Tenant feature
  flags apply to every role, the test role included.

The guards never raise; they return a :class:`GuardDecision`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .features import HOLD_WHILE_LOADING_FEATURES, Feature
from .roles import ENTRY_PATH, UNIVERSAL_TEST_ROLE, Role, home_path
from .session import SessionContext

RENDER = 'render'
REDIRECT = 'redirect'
LOADING = 'loading'
FALLBACK = 'fallback'


@dataclass(frozen=True)
class GuardDecision:
    outcome: str
    redirect_to: Optional[str] = None
    fallback: Any = None
    reason: str = ''

    @property
    def allowed(self) -> bool:
        return self.outcome == RENDER

    def as_dict(self) -> dict:
        data = {'decision': self.outcome}
        if self.redirect_to is not None:
            data['redirect'] = self.redirect_to
        if self.reason:
            data['reason'] = self.reason
        return data

    @classmethod
    def render(cls) -> 'GuardDecision':
        return cls(RENDER)

    @classmethod
    def loading(cls, reason: str = '') -> 'GuardDecision':
        return cls(LOADING, reason=reason)

    @classmethod
    def redirect(cls, to: str, reason: str = '') -> 'GuardDecision':
        return cls(REDIRECT, redirect_to=to, reason=reason)


def role_guard(session: SessionContext, allowed_roles: Optional[Iterable[Role]] = None) -> GuardDecision:
    if session.auth_loading or session.profile_loading:
        return GuardDecision.loading('session')
    if not session.is_authenticated:
        return GuardDecision.redirect(ENTRY_PATH, 'unauthenticated')
    if session.profile is None:
        return GuardDecision.redirect(ENTRY_PATH, 'no_profile')
    role = session.role
    if role is None:
        return GuardDecision.redirect(ENTRY_PATH, 'unknown_role')
    if allowed_roles is None or role == UNIVERSAL_TEST_ROLE:
        return GuardDecision.render()
    if role not in set(allowed_roles):
        return GuardDecision.redirect(home_path(role), 'role_not_allowed')
    return GuardDecision.render()


def feature_guard(session: SessionContext, feature: Feature, fallback: Any = None) -> GuardDecision:
    if session.role == UNIVERSAL_TEST_ROLE:
        return GuardDecision.render()
    if session.laboratory is not None and session.has_feature(feature):
        return GuardDecision.render()
    return GuardDecision(FALLBACK, fallback=fallback, reason='feature_disabled')


def feature_route(session: SessionContext, feature: Optional[Feature], fallback_path: str) -> GuardDecision:
    if session.laboratory_loading:
        return GuardDecision.loading('laboratory')
    if feature is None:
        return GuardDecision.render()
    if session.laboratory is None and feature in HOLD_WHILE_LOADING_FEATURES:
        return GuardDecision.loading('laboratory')
    if not session.has_feature(feature):
        return GuardDecision.redirect(fallback_path, 'feature_disabled')
    return GuardDecision.render()
