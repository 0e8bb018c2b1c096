"""
Navigation endpoints.

``/api/navigation`` lists the caller's routes, ``/api/navigation/resolve``
answers the guard decision for a client-side path, and
``/api/pages/<area>/<segment>`` runs the guards and then the page view.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from lab.exceptions import GuardDenied, TenantUnavailable
from lab.guards import LOADING
from lab.navigation import navigation_for, resolve, resolve_path
from lab.permissions import HasProfile
from lab.session import session_for


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile])
def navigation(request):
    return Response({'ok': True, **navigation_for(session_for(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def resolve_navigation(request):
    """Guard decision for ``?path=/area/segment`` without running the page."""
    path = request.query_params.get('path') or ''
    res = resolve_path(session_for(request), path)
    payload = {'ok': True, 'path': path, **res.decision.as_dict()}
    if res.route is not None:
        payload['feature'] = res.route.feature.value if res.route.feature else None
    return Response(payload)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def page(request, area, segment=''):
    session = session_for(request)
    res = resolve(session, area, segment)
    if res.decision.outcome == LOADING:
        raise TenantUnavailable()
    if not res.decision.allowed:
        raise GuardDenied(res.decision)
    data = res.route.load()(request, session)
    return Response({'ok': True, 'page': f'{res.area.prefix}/{res.route.path}', 'data': data})
