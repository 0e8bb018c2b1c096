"""
Explicit session context.

Views and consumers resolve one :class:`SessionContext` per request and
hand it to guards and services; nothing reads the request or ambient
storage further down.  Values the browser used to keep in local storage
(last branding choice, last mock role) go through an injected
:class:`SessionPersistence`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .features import Feature, is_enabled
from .roles import Role, parse_role

BRANDING_KEY = 'branding'
MOCK_ROLE_KEY = 'mockUserRole'


@dataclass(frozen=True)
class SessionContext:
    user: Any = None
    profile: Any = None
    laboratory: Any = None
    auth_loading: bool = False
    profile_loading: bool = False
    laboratory_loading: bool = False
    extras: dict = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user is not None and getattr(self.user, 'is_authenticated', False))

    @property
    def role(self) -> Optional[Role]:
        if self.profile is None:
            return None
        return parse_role(getattr(self.profile, 'role', None))

    @property
    def assigned_branch(self) -> Optional[str]:
        branch = getattr(self.profile, 'assigned_branch', None)
        return branch.strip() if isinstance(branch, str) and branch.strip() else None

    @property
    def laboratory_id(self):
        return getattr(self.laboratory, 'id', None)

    @property
    def features(self) -> dict:
        return dict(getattr(self.laboratory, 'features', None) or {})

    def has_feature(self, feature: Feature) -> bool:
        return is_enabled(self.features, feature)


class SessionPersistence(Protocol):
    def load(self, key: str, default=None): ...

    def save(self, key: str, value) -> None: ...

    def clear(self, key: str) -> None: ...


class DjangoSessionPersistence:
    """Stores client-restorable values in the Django session."""

    def __init__(self, session):
        self.session = session

    def load(self, key: str, default=None):
        return self.session.get(key, default)

    def save(self, key: str, value) -> None:
        self.session[key] = value

    def clear(self, key: str) -> None:
        self.session.pop(key, None)


class MemoryPersistence:
    def __init__(self, initial: Optional[dict] = None):
        self.data = dict(initial or {})

    def load(self, key: str, default=None):
        return self.data.get(key, default)

    def save(self, key: str, value) -> None:
        self.data[key] = value

    def clear(self, key: str) -> None:
        self.data.pop(key, None)


def persistence_for(request) -> SessionPersistence:
    # DRF Request proxies .session to the underlying HttpRequest
    session = getattr(request, 'session', None)
    if session is None:
        return MemoryPersistence()
    return DjangoSessionPersistence(session)


def resolve_session(request) -> SessionContext:
    """Build the context for an authenticated request.

    Raises :class:`lab.exceptions.OrphanedProfile` when the user is
    authenticated but no profile exists for them.
    """
    from .services.laboratories import load_laboratory
    from .services.profiles import load_profile

    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return SessionContext(user=None)
    profile = load_profile(user)
    laboratory = load_laboratory(profile.laboratory_id)
    return SessionContext(user=user, profile=profile, laboratory=laboratory)


def session_for(request) -> SessionContext:
    """Resolve the context once per request and reuse it."""
    ctx = getattr(request, '_lab_session', None)
    if ctx is None:
        ctx = resolve_session(request)
        request._lab_session = ctx
    return ctx
