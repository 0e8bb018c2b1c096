"""
Case query composition.

Every case listing goes through :func:`compose_cases`, which scopes the
queryset in this order: tenant, role exam-type visibility, assigned
branch, then the user's own filters.  Role visibility and branch scoping
are authorization rules and are always applied in the database.

With pagination the user filters are applied once, in the database, and
the page is returned as-is.  Without pagination the scoped rows are
fetched and :func:`filter_rows_locally` applies the user filters in
Python.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from django.db import DatabaseError
from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from lab.exceptions import UpstreamError
from lab.models import MedicalCase
from lab.roles import allowed_exam_types, canonical_exam_type
from lab.session import SessionContext

from .audit import record_changes
from .cache import DASHBOARD_STATS, MEDICAL_CASES, cached

logger = logging.getLogger(__name__)

# public sort name -> ORM path
SORT_FIELDS = {
    'created_at': 'created_at',
    'date': 'date',
    'code': 'code',
    'exam_type': 'exam_type',
    'branch': 'branch',
    'treating_doctor': 'treating_doctor',
    'origin': 'origin',
    'total_amount': 'total_amount',
    'remaining': 'remaining',
    'payment_status': 'payment_status',
    'nombre': 'patient__nombre',
    'cedula': 'patient__cedula',
}

ROW_FIELDS = (
    'id', 'code', 'exam_type', 'consulta', 'branch', 'origin', 'treating_doctor', 'date',
    'total_amount', 'remaining', 'exchange_rate', 'payment_status', 'doc_aprobado',
    'pdf_en_ready', 'cito_status', 'email_sent', 'informepdf_url', 'created_at', 'updated_at',
    'patient_id', 'laboratory_id',
    'patient__cedula', 'patient__nombre', 'patient__edad', 'patient__telefono', 'patient__email',
)

# patient columns flattened onto the case row
PATIENT_COLUMNS = {
    'patient__cedula': 'cedula',
    'patient__nombre': 'nombre',
    'patient__edad': 'edad',
    'patient__telefono': 'telefono',
    'patient__email': 'patient_email',
}

EDITABLE_FIELDS = (
    'exam_type', 'consulta', 'branch', 'origin', 'treating_doctor', 'date', 'total_amount',
    'remaining', 'exchange_rate', 'payment_status', 'doc_aprobado', 'pdf_en_ready',
    'cito_status', 'email_sent', 'informepdf_url',
)

DEFAULT_PAGE_SIZE = 20


def _clean_list(values: Optional[Iterable[str]]) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(v.strip() for v in values if isinstance(v, str) and v.strip())


@dataclass
class CaseQuery:
    search: Optional[str] = None
    exam_type: Optional[str] = None
    document_status: Optional[str] = None
    pdf_status: Optional[str] = None
    cito_status: Optional[str] = None
    branch: Optional[str] = None
    branches: tuple[str, ...] = ()
    payment_status: Optional[str] = None
    doctors: tuple[str, ...] = ()
    origins: tuple[str, ...] = ()
    consulta: Optional[str] = None
    email_sent: Optional[bool] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_field: str = 'created_at'
    sort_direction: str = 'desc'

    def __post_init__(self):
        # whitespace-only input counts as no search at all
        self.search = (self.search or '').strip() or None
        self.exam_type = canonical_exam_type(self.exam_type) if self.exam_type else None
        self.branch = (self.branch or '').strip() or None
        self.branches = _clean_list(self.branches)
        self.doctors = _clean_list(self.doctors)
        self.origins = _clean_list(self.origins)
        if self.sort_field not in SORT_FIELDS:
            self.sort_field = 'created_at'
        if self.sort_direction not in ('asc', 'desc'):
            self.sort_direction = 'desc'

    def as_params(self) -> dict:
        """Request parameters in the frontend's naming; empty values are left out."""
        params = {
            'searchTerm': self.search,
            'examType': self.exam_type,
            'documentStatus': self.document_status,
            'pdfStatus': self.pdf_status,
            'citoStatus': self.cito_status,
            'branch': self.branch,
            'branches': list(self.branches),
            'paymentStatus': self.payment_status,
            'doctors': list(self.doctors),
            'origins': list(self.origins),
            'consulta': self.consulta,
            'emailSent': self.email_sent,
            'dateFrom': self.date_from.isoformat() if self.date_from else None,
            'dateTo': self.date_to.isoformat() if self.date_to else None,
            'sortField': self.sort_field,
            'sortDirection': self.sort_direction,
        }
        return {k: v for k, v in params.items() if v is not None and v != [] and v != ''}


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        if self.page < 1 or self.page_size < 1:
            raise ValueError('page and page_size must be positive')

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def scoped_cases(session: SessionContext):
    """Tenant, role visibility and branch scoping; no user filters."""
    if session.laboratory_id is None:
        return MedicalCase.objects.none()
    qs = MedicalCase.objects.filter(laboratory_id=session.laboratory_id)
    allowed = allowed_exam_types(session.role)
    if allowed is not None:
        qs = qs.filter(exam_type__in=allowed)
    if session.assigned_branch:
        qs = qs.filter(branch=session.assigned_branch)
    return qs


def apply_query(qs, query: CaseQuery):
    if query.search:
        term = query.search
        qs = qs.filter(
            Q(code__icontains=term)
            | Q(treating_doctor__icontains=term)
            | Q(patient__nombre__icontains=term)
            | Q(patient__cedula__icontains=term)
        )
    if query.branches:
        qs = qs.filter(branch__in=query.branches)
    elif query.branch:
        qs = qs.filter(branch=query.branch)
    if query.date_from:
        qs = qs.filter(created_at__date__gte=query.date_from)
    if query.date_to:
        qs = qs.filter(created_at__date__lte=query.date_to)
    if query.exam_type:
        qs = qs.filter(exam_type=query.exam_type)
    if query.consulta:
        qs = qs.filter(consulta=query.consulta)
    if query.payment_status:
        qs = qs.filter(payment_status=query.payment_status)
    if query.document_status:
        qs = qs.filter(doc_aprobado=query.document_status)
    if query.pdf_status == 'pendientes':
        qs = qs.filter(pdf_en_ready=False)
    elif query.pdf_status == 'faltantes':
        qs = qs.filter(pdf_en_ready=True)
    if query.cito_status:
        qs = qs.filter(cito_status=query.cito_status)
    if query.doctors:
        qs = qs.filter(treating_doctor__in=query.doctors)
    if query.origins:
        qs = qs.filter(origin__in=query.origins)
    if query.email_sent is not None:
        qs = qs.filter(email_sent=query.email_sent)
    prefix = '' if query.sort_direction == 'asc' else '-'
    return qs.order_by(prefix + SORT_FIELDS[query.sort_field], prefix + 'id')


def compose_cases(session: SessionContext, query: Optional[CaseQuery] = None):
    qs = scoped_cases(session)
    if query is not None:
        qs = apply_query(qs, query)
    return qs


def _row(values: dict) -> dict:
    row = {}
    for key, value in values.items():
        row[PATIENT_COLUMNS.get(key, key)] = value
    return row


def fetch_rows(qs) -> list[dict]:
    try:
        return [_row(v) for v in qs.values(*ROW_FIELDS)]
    except DatabaseError as e:
        raise UpstreamError(f'case query failed: {e}')


def _norm(value) -> str:
    return value.strip().lower() if isinstance(value, str) else ''


def _created_on(row: dict) -> Optional[date]:
    created = row.get('created_at')
    if isinstance(created, datetime):
        if timezone.is_aware(created):
            created = timezone.localtime(created)
        return created.date()
    return created


def filter_rows_locally(rows: list[dict], query: CaseQuery) -> list[dict]:
    """Apply the user filters to already scoped rows."""
    out = []
    term = query.search.lower() if query.search else None
    branches = set(query.branches)
    for row in rows:
        if term and not any(term in _norm(row.get(k)) for k in ('code', 'treating_doctor', 'nombre', 'cedula')):
            continue
        if branches:
            if row.get('branch') not in branches:
                continue
        elif query.branch and row.get('branch') != query.branch:
            continue
        created = _created_on(row)
        if query.date_from and (created is None or created < query.date_from):
            continue
        if query.date_to and (created is None or created > query.date_to):
            continue
        if query.exam_type and row.get('exam_type') != query.exam_type:
            continue
        if query.consulta and row.get('consulta') != query.consulta:
            continue
        if query.payment_status and row.get('payment_status') != query.payment_status:
            continue
        if query.document_status and _norm(row.get('doc_aprobado') or 'faltante') != query.document_status:
            continue
        if query.pdf_status == 'pendientes' and row.get('pdf_en_ready'):
            continue
        if query.pdf_status == 'faltantes' and not row.get('pdf_en_ready'):
            continue
        if query.cito_status and row.get('cito_status') != query.cito_status:
            continue
        if query.doctors and row.get('treating_doctor') not in query.doctors:
            continue
        if query.origins and row.get('origin') not in query.origins:
            continue
        if query.email_sent is not None and bool(row.get('email_sent')) != query.email_sent:
            continue
        out.append(row)

    sort_key = query.sort_field

    def key(row):
        value = row.get(sort_key)
        if isinstance(value, str):
            value = value.lower()
        return (value is None, value if value is not None else '')

    out.sort(key=key, reverse=query.sort_direction == 'desc')
    return out


def _scope_key(session: SessionContext) -> tuple:
    return (str(session.laboratory_id), session.role.value if session.role else None, session.assigned_branch)


def list_cases(session: SessionContext, query: CaseQuery, pagination: Optional[Pagination] = None) -> dict:
    if pagination is None:
        rows = filter_rows_locally(fetch_rows(scoped_cases(session)), query)
        return {'data': rows, 'count': len(rows), 'page': 1, 'limit': len(rows), 'totalPages': 1}

    def fetch():
        qs = compose_cases(session, query)
        try:
            total = qs.count()
        except DatabaseError as e:
            raise UpstreamError(f'case count failed: {e}')
        page_qs = qs[pagination.offset:pagination.offset + pagination.page_size]
        return {
            'data': fetch_rows(page_qs),
            'count': total,
            'page': pagination.page,
            'limit': pagination.page_size,
            'totalPages': math.ceil(total / pagination.page_size) if total else 0,
        }

    parts = _scope_key(session) + (query.as_params(), pagination.page, pagination.page_size)
    return cached(MEDICAL_CASES, parts, fetch)


def get_case(session: SessionContext, case_id: int) -> MedicalCase:
    case = scoped_cases(session).select_related('patient', 'laboratory').filter(id=case_id).first()
    if case is None:
        raise NotFound('case not found')
    return case


def editable_fields(session: SessionContext) -> tuple[str, ...]:
    """Fields the caller may change; scoped roles cannot move a case out of their own scope."""
    locked = set()
    if session.assigned_branch:
        locked.add('branch')
    if allowed_exam_types(session.role) is not None:
        locked.add('exam_type')
    return tuple(f for f in EDITABLE_FIELDS if f not in locked)


def update_case(session: SessionContext, case_id: int, changes: dict) -> dict:
    case = get_case(session, case_id)
    allowed = editable_fields(session)
    locked = [name for name in changes if name in EDITABLE_FIELDS and name not in allowed]
    if locked:
        raise ValidationError({name: 'not editable for this role' for name in locked})
    before = {f: getattr(case, f) for f in EDITABLE_FIELDS}
    for name, value in changes.items():
        if name in EDITABLE_FIELDS:
            setattr(case, name, value)
    case.save()
    after = {f: getattr(case, f) for f in EDITABLE_FIELDS}
    record_changes(
        user=session.user, laboratory_id=case.laboratory_id,
        entity_type='medical_case', entity_id=case.id, before=before, after=after,
    )
    logger.info('Case %s updated by user %s', case.code, getattr(session.user, 'pk', None))
    return fetch_rows(MedicalCase.objects.filter(id=case.id))[0]


def case_stats(session: SessionContext, date_from: Optional[date] = None, date_to: Optional[date] = None) -> dict:
    def fetch():
        qs = compose_cases(session, CaseQuery(date_from=date_from, date_to=date_to))
        try:
            totals = qs.aggregate(
                total=Count('id'),
                revenue=Sum('total_amount'),
                remaining=Sum('remaining'),
            )
            by_exam = list(qs.order_by().values('exam_type').annotate(count=Count('id'), revenue=Sum('total_amount')))
            by_branch = list(qs.order_by().values('branch').annotate(count=Count('id'), revenue=Sum('total_amount')))
            by_payment = list(qs.order_by().values('payment_status').annotate(count=Count('id')))
            by_doc = list(qs.order_by().values('doc_aprobado').annotate(count=Count('id')))
        except DatabaseError as e:
            raise UpstreamError(f'stats query failed: {e}')
        return {
            'totalCases': totals['total'] or 0,
            'totalRevenue': totals['revenue'] or 0,
            'pendingAmount': totals['remaining'] or 0,
            'byExamType': by_exam,
            'byBranch': by_branch,
            'byPaymentStatus': {r['payment_status']: r['count'] for r in by_payment},
            'byDocumentStatus': {r['doc_aprobado']: r['count'] for r in by_doc},
        }

    parts = _scope_key(session) + (
        date_from.isoformat() if date_from else None,
        date_to.isoformat() if date_to else None,
    )
    return cached(DASHBOARD_STATS, parts, fetch)
