"""
Medical case endpoints.

Listings always go through the query composer, so tenant, role
visibility and branch scoping are applied before any client filter.
"""
from __future__ import annotations

import logging

from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from lab.features import Feature
from lab.permissions import FeatureRequired, HasProfile
from lab.serializers.cases import CaseListQuerySerializer, CaseUpdateSerializer, query_data
from lab.services.cases import case_stats, compose_cases, fetch_rows, get_case, list_cases, update_case
from lab.services.export import build_cases_workbook, export_filename, select_columns
from lab.services.pdf import generate_pdf
from lab.session import session_for

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _query(request) -> CaseListQuerySerializer:
    s = CaseListQuerySerializer(data=query_data(request.query_params))
    s.is_valid(raise_exception=True)
    return s


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile, FeatureRequired(Feature.CASES)])
def cases(request):
    """Filtered case list.

    Query params: searchTerm, examType, documentStatus, pdfStatus,
    citoStatus, branch, branches, paymentStatus, doctors, origins,
    consulta, emailSent, dateFrom, dateTo, sortField, sortDirection,
    page, pageSize.  Without page/pageSize all visible rows are returned.
    """
    s = _query(request)
    result = list_cases(session_for(request), s.to_case_query(), s.to_pagination())
    return Response({'ok': True, **result})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile, FeatureRequired(Feature.STATS)])
def cases_stats(request):
    s = _query(request)
    data = case_stats(session_for(request), s.validated_data.get('dateFrom'), s.validated_data.get('dateTo'))
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile, FeatureRequired(Feature.CASES)])
def export_cases(request):
    s = _query(request)
    query = s.to_case_query()
    rows = fetch_rows(compose_cases(session_for(request), query))
    columns = select_columns([c for c in (request.query_params.get('columns') or '').split(',') if c])
    content = build_cases_workbook(rows, columns)
    filename = export_filename(query)
    resp = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    logger.info('Exported %d cases to %s', len(rows), filename)
    return resp


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, HasProfile, FeatureRequired(Feature.CASES)])
def case_detail(request, pk: int):
    s = CaseUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    row = update_case(session_for(request), pk, s.validated_data)
    return Response({'ok': True, 'data': row})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasProfile, FeatureRequired(Feature.CASES)])
def case_pdf(request, pk: int):
    """Trigger report generation and wait a bounded time for the URL.

    202 means the document was requested but is not ready yet.
    """
    case = get_case(session_for(request), pk)
    url = generate_pdf(case)
    if not url:
        return Response({'ok': True, 'pending': True, 'message': 'El PDF aún no está listo.'}, status=status.HTTP_202_ACCEPTED)
    return Response({'ok': True, 'pending': False, 'url': url})
