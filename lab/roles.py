"""
Known roles and the tables that hang off them.

Every table here is total over :class:`Role`: adding a role without
giving it a landing path and an area fails at import time instead of
falling through to a silent default.
"""
from __future__ import annotations

from typing import Optional

from django.db import models


class Role(models.TextChoices):
    OWNER = 'owner', 'Owner'
    MEDICOWNER = 'medicowner', 'Medic owner'
    EMPLOYEE = 'employee', 'Recepcionista'
    RESIDENTE = 'residente', 'Residente'
    CITOTECNO = 'citotecno', 'Citotecnólogo'
    PATOLOGO = 'patologo', 'Patólogo'
    IMAGENOLOGIA = 'imagenologia', 'Imagenología'
    MEDICO_TRATANTE = 'medico_tratante', 'Médico tratante'
    ENFERMERO = 'enfermero', 'Enfermero'
    CALL_CENTER = 'call_center', 'Call center'
    PRUEBA = 'prueba', 'Prueba (QA)'


# QA role: passes role gates and inline feature guards, never route-level
# feature flags.
UNIVERSAL_TEST_ROLE = Role.PRUEBA

ENTRY_PATH = '/'

ROLE_HOME_PATHS: dict[Role, str] = {
    Role.OWNER: '/dashboard/home',
    Role.MEDICOWNER: '/dashboard/home',
    Role.EMPLOYEE: '/employee/home',
    Role.RESIDENTE: '/medic/cases',
    Role.CITOTECNO: '/cito/cases',
    Role.PATOLOGO: '/patolo/cases',
    Role.IMAGENOLOGIA: '/imagenologia/home',
    Role.MEDICO_TRATANTE: '/medico-tratante/home',
    Role.ENFERMERO: '/enfermero/home',
    Role.CALL_CENTER: '/call-center/home',
    Role.PRUEBA: '/prueba/home',
}


class ExamType:
    BIOPSIA = 'Biopsia'
    CITOLOGIA = 'Citología'
    INMUNOHISTOQUIMICA = 'Inmunohistoquímica'


# Filter values sent by the frontend -> stored values
EXAM_TYPE_ALIASES = {
    'biopsia': ExamType.BIOPSIA,
    'citologia': ExamType.CITOLOGIA,
    'inmunohistoquimica': ExamType.INMUNOHISTOQUIMICA,
}

# None = no exam-type restriction. This is an authorization rule, not a
# presentation preference.
ROLE_EXAM_TYPES: dict[Role, Optional[frozenset[str]]] = {
    Role.OWNER: None,
    Role.MEDICOWNER: None,
    Role.EMPLOYEE: None,
    Role.RESIDENTE: frozenset({ExamType.BIOPSIA}),
    Role.CITOTECNO: frozenset({ExamType.CITOLOGIA}),
    Role.PATOLOGO: frozenset({ExamType.BIOPSIA, ExamType.INMUNOHISTOQUIMICA}),
    Role.IMAGENOLOGIA: None,
    Role.MEDICO_TRATANTE: None,
    Role.ENFERMERO: None,
    Role.CALL_CENTER: None,
    Role.PRUEBA: None,
}


def _check_total(name: str, table: dict) -> None:
    missing = [r.value for r in Role if r not in table]
    if missing:
        raise ImportError(f"{name} has no entry for roles: {', '.join(missing)}")


_check_total('ROLE_HOME_PATHS', ROLE_HOME_PATHS)
_check_total('ROLE_EXAM_TYPES', ROLE_EXAM_TYPES)


def parse_role(value) -> Optional[Role]:
    """Return the :class:`Role` for ``value`` or ``None`` if it is unknown."""
    try:
        return Role(value)
    except ValueError:
        return None


def home_path(role: Optional[Role]) -> str:
    if role is None:
        return ENTRY_PATH
    return ROLE_HOME_PATHS[role]


def canonical_exam_type(value: str) -> str:
    return EXAM_TYPE_ALIASES.get(value, value)


def allowed_exam_types(role: Optional[Role]) -> Optional[frozenset[str]]:
    if role is None:
        return frozenset()
    return ROLE_EXAM_TYPES[role]
