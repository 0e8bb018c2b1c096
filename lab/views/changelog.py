from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from lab.features import Feature
from lab.permissions import FeatureRequired, HasProfile
from lab.services.audit import list_changes
from lab.services.cache import CHANGE_LOGS, cached
from lab.session import session_for


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile, FeatureRequired(Feature.CHANGE_HISTORY)])
def changelog(request):
    lab_id = session_for(request).laboratory_id
    entity_type = request.query_params.get('entityType') or None
    entity_id = request.query_params.get('entityId') or None
    try:
        limit = max(1, min(int(request.query_params.get('limit') or 100), 500))
    except ValueError:
        return Response({'ok': False, 'error': {'code': 'api_error', 'message': 'limit must be an integer'}}, status=400)
    data = cached(
        CHANGE_LOGS, (str(lab_id), entity_type, entity_id, limit),
        lambda: list_changes(lab_id, entity_type=entity_type, entity_id=entity_id, limit=limit),
    )
    return Response({'ok': True, 'data': data})
