"""
Page payloads dispatched through the route table.

Each function takes the request and the resolved
:class:`~lab.session.SessionContext` and returns the data the page needs.
The guards have already run; these functions only assemble data.
"""
from __future__ import annotations

from django.db.models import Q

from lab.features import Feature
from lab.guards import feature_guard
from lab.models import Patient, Profile
from lab.serializers.cases import CaseListQuerySerializer, query_data
from lab.services.audit import list_changes
from lab.services.call_center import list_records
from lab.services.cases import Pagination, case_stats, list_cases
from lab.services.export import EXPORT_COLUMNS
from lab.services.laboratories import laboratory_payload, module_settings
from lab.services.profiles import profile_payload

REGISTRATION_MODULE = 'registrationForm'


def _dates(request) -> dict:
    s = CaseListQuerySerializer(data=query_data(request.query_params))
    s.is_valid(raise_exception=True)
    return {'date_from': s.validated_data.get('dateFrom'), 'date_to': s.validated_data.get('dateTo')}


def home_page(request, session):
    lab = session.laboratory
    data = {
        'profile': profile_payload(session.profile),
        'laboratory': {'name': lab.name, 'slug': lab.slug} if lab else None,
    }
    # the summary block is optional on every home page
    if feature_guard(session, Feature.STATS).allowed:
        data['stats'] = case_stats(session)
    return data


def stats_page(request, session):
    return case_stats(session, **_dates(request))


def reports_page(request, session):
    return {
        'stats': case_stats(session, **_dates(request)),
        'exportColumns': [{'key': k, 'label': label} for k, label in EXPORT_COLUMNS],
    }


def cases_page(request, session):
    s = CaseListQuerySerializer(data=query_data(request.query_params))
    s.is_valid(raise_exception=True)
    pagination = s.to_pagination() or Pagination()
    return list_cases(session, s.to_case_query(), pagination)


def patients_page(request, session):
    qs = Patient.objects.filter(laboratory_id=session.laboratory_id)
    q = (request.query_params.get('q') or '').strip()
    if q:
        qs = qs.filter(Q(nombre__icontains=q) | Q(cedula__icontains=q))
    try:
        page = max(1, int(request.query_params.get('page') or 1))
        page_size = max(1, min(int(request.query_params.get('pageSize') or 20), 200))
    except ValueError:
        page, page_size = 1, 20
    total = qs.count()
    start = (page - 1) * page_size
    rows = list(qs.order_by('nombre', 'id').values('id', 'cedula', 'nombre', 'edad', 'telefono', 'email')[start:start + page_size])
    return {'data': rows, 'count': total, 'page': page, 'limit': page_size}


def users_page(request, session):
    profiles = Profile.objects.filter(laboratory_id=session.laboratory_id).select_related('user').order_by('role', 'id')
    return {'data': [profile_payload(p) for p in profiles]}


def changelog_page(request, session):
    return {'data': list_changes(session.laboratory_id)}


def registration_form_page(request, session):
    return {'module': REGISTRATION_MODULE, 'config': module_settings(session.laboratory, REGISTRATION_MODULE)}


def medical_form_page(request, session):
    return registration_form_page(request, session)


def settings_page(request, session):
    return {
        'profile': profile_payload(session.profile),
        'laboratory': laboratory_payload(session.laboratory),
    }


def call_center_page(request, session):
    return {'data': list_records(session.laboratory_id)}
