"""
Tenant lookups.

Laboratory rows are read-only from this layer and change rarely, so they
are cached under the ``laboratory`` namespace and dropped by the
realtime bridge when the row changes.
"""
from __future__ import annotations

from typing import Optional

from django.db import DatabaseError

from lab.exceptions import UpstreamError
from lab.models import Laboratory

from .cache import LABORATORY, cached


def load_laboratory(laboratory_id) -> Optional[Laboratory]:
    if not laboratory_id:
        return None

    def fetch():
        try:
            return Laboratory.objects.filter(id=laboratory_id).first() or False
        except DatabaseError as e:
            raise UpstreamError(f'laboratory lookup failed: {e}')

    # False marks a known-missing row so it is cached too
    return cached(LABORATORY, ('row', str(laboratory_id)), fetch) or None


def laboratory_payload(lab: Laboratory) -> dict:
    config = lab.config or {}
    return {
        'id': str(lab.id),
        'slug': lab.slug,
        'name': lab.name,
        'status': lab.status,
        'features': lab.features or {},
        'branding': lab.branding or {},
        'config': {
            'branches': lab.branches,
            'examTypes': config.get('examTypes') or [],
            'modules': config.get('modules') or {},
        },
    }


def module_settings(lab: Laboratory, module: str) -> Optional[dict]:
    """Nested field configuration of one module, with defaults filled in."""
    raw = lab.module_config(module)
    if raw is None:
        return None
    fields = {}
    for name, conf in (raw.get('fields') or {}).items():
        conf = conf or {}
        fields[name] = {
            'enabled': bool(conf.get('enabled', True)),
            'required': bool(conf.get('required', False)),
        }
    return {
        'fields': fields,
        'actions': raw.get('actions') or {},
        'settings': raw.get('settings') or {},
    }


def resolve_branding(lab: Optional[Laboratory]) -> dict:
    branding = dict((lab.branding if lab else None) or {})
    config = (lab.config if lab else None) or {}
    # phone can live in several places depending on how the tenant was set up
    for candidate in (config.get('contactPhone'), config.get('phoneNumber'),
                      branding.get('phoneNumber'), branding.get('phone')):
        if candidate and str(candidate).strip():
            branding['phone'] = str(candidate).strip()
            break
    if lab is not None:
        branding.setdefault('name', lab.name)
        branding.setdefault('slug', lab.slug)
    return branding
