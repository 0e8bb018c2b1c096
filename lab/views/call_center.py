from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from lab.permissions import RoleRequired
from lab.roles import Role
from lab.serializers.call_center import CallCenterRecordSerializer
from lab.services.call_center import create_record, list_records
from lab.session import session_for


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RoleRequired(Role.CALL_CENTER, Role.OWNER, Role.MEDICOWNER)])
def call_center_records(request):
    session = session_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'data': list_records(session.laboratory_id)})
    s = CallCenterRecordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    record = create_record(session.laboratory, s.validated_data, user=request.user)
    return Response({'ok': True, 'data': record}, status=status.HTTP_201_CREATED)
