"""
Tenant feature flags.

Each laboratory stores a ``features`` map keyed by these values; a key
that is absent counts as disabled.
"""
from __future__ import annotations

from typing import Optional

from django.db import models


class Feature(models.TextChoices):
    CHAT_AI = 'hasChatAI', 'Chat IA'
    STATS = 'hasStats', 'Estadísticas'
    FORM = 'hasForm', 'Formulario de registro'
    CASE_GENERATOR = 'hasCaseGenerator', 'Generador de casos'
    CASES = 'hasCases', 'Casos'
    PATIENTS = 'hasPatients', 'Pacientes'
    PAYMENT = 'hasPayment', 'Pagos'
    USERS = 'hasUsers', 'Usuarios'
    CHANGE_HISTORY = 'hasChangeHistory', 'Historial de cambios'
    TRIAJE = 'hasTriaje', 'Triaje'
    REPORTS = 'hasReports', 'Reportes'


# Route-level guards keep waiting instead of bouncing to the fallback path
# when the tenant record is unavailable and the route needs one of these.
# These are the pages users most often reload in place.
HOLD_WHILE_LOADING_FEATURES: frozenset[Feature] = frozenset({
    Feature.CASES,
    Feature.PATIENTS,
})


def is_enabled(features: Optional[dict], feature: Feature) -> bool:
    if not features:
        return False
    return features.get(feature.value) is True


def parse_feature(value) -> Optional[Feature]:
    try:
        return Feature(value)
    except ValueError:
        return None
