"""
Case listings as xlsx.

Built synchronously in memory; the cost is proportional to the number
of rows handed in.
"""
from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import xlsxwriter
from django.utils import timezone

from .cases import CaseQuery

SHEET_NAME = 'Casos Médicos'

# (row key, column header)
EXPORT_COLUMNS: tuple[tuple[str, str], ...] = (
    ('code', 'Código'),
    ('created_at', 'Fecha de registro'),
    ('nombre', 'Paciente'),
    ('cedula', 'Cédula'),
    ('edad', 'Edad'),
    ('telefono', 'Teléfono'),
    ('patient_email', 'Email'),
    ('exam_type', 'Tipo de examen'),
    ('consulta', 'Consulta'),
    ('branch', 'Sede'),
    ('origin', 'Procedencia'),
    ('treating_doctor', 'Médico tratante'),
    ('total_amount', 'Monto total (USD)'),
    ('remaining', 'Monto restante (USD)'),
    ('payment_status', 'Estado de pago'),
    ('doc_aprobado', 'Estado del documento'),
    ('email_sent', 'Email enviado'),
)


def select_columns(keys: Optional[Iterable[str]]) -> tuple[tuple[str, str], ...]:
    if not keys:
        return EXPORT_COLUMNS
    wanted = set(keys)
    return tuple(c for c in EXPORT_COLUMNS if c[0] in wanted) or EXPORT_COLUMNS


def _cell(value):
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Sí' if value else 'No'
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.strftime('%Y-%m-%d %H:%M')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def build_cases_workbook(rows: Sequence[dict], columns: Sequence[tuple[str, str]] = EXPORT_COLUMNS) -> bytes:
    out = io.BytesIO()
    # cell text is never interpreted as a formula
    workbook = xlsxwriter.Workbook(out, {'in_memory': True, 'strings_to_formulas': False})
    sheet = workbook.add_worksheet(SHEET_NAME)
    header = workbook.add_format({'bold': True, 'bg_color': '#E8EAF6', 'border': 1})
    for col, (_, label) in enumerate(columns):
        sheet.write(0, col, label, header)
        sheet.set_column(col, col, max(12, len(label) + 2))
    for r, row in enumerate(rows, start=1):
        sheet.write_row(r, 0, [_cell(row.get(key)) for key, _ in columns])
    sheet.freeze_panes(1, 0)
    workbook.close()
    return out.getvalue()


def export_filename(query: Optional[CaseQuery] = None, base: str = 'casos_medicos', now: Optional[datetime] = None) -> str:
    now = timezone.localtime(now or timezone.now())
    name = f"{base}_{now.strftime('%Y-%m-%d')}_{now.strftime('%H-%M-%S')}"
    parts = []
    if query is not None:
        if query.payment_status:
            parts.append(f'estado_{query.payment_status}')
        if query.branch:
            parts.append(f'sede_{query.branch}')
        if query.branches:
            parts.append(f'sedes_{len(query.branches)}')
        if query.pdf_status:
            parts.append(f'pdf_{query.pdf_status}')
        if query.doctors:
            parts.append(f'medicos_{len(query.doctors)}')
        if query.origins:
            parts.append(f'origenes_{len(query.origins)}')
        if query.cito_status:
            parts.append(f'citologia_{query.cito_status}')
        if query.document_status:
            parts.append(f'doc_{query.document_status}')
        if query.exam_type:
            parts.append(f'examen_{query.exam_type}')
        if query.search:
            parts.append('busqueda')
        if query.date_from or query.date_to:
            parts.append('rango_fechas')
    if parts:
        name += '_filtrado_' + '_'.join(parts)
    return name + '.xlsx'
