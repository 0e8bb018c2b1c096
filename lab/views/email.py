"""
Report email endpoints.

``/api/send-email`` keeps the response shape the frontend already
expects (``success`` / ``error`` rather than the ``ok`` envelope used
elsewhere), so errors are answered here instead of by the exception
handler.
"""
from __future__ import annotations

import logging

from django.utils import timezone
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from lab.serializers.email import SendEmailSerializer
from lab.services.email import (
    PROVIDER,
    MissingEmailFields,
    ProviderError,
    ProviderNotConfigured,
    config_summary,
    send_report_email,
)

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST', 'PUT', 'PATCH', 'DELETE'])
@authentication_classes([])
@permission_classes([AllowAny])
def send_email(request):
    if request.method != 'POST':
        return Response({'success': False, 'error': 'Method not allowed'}, status=405)

    s = SendEmailSerializer(data=request.data)
    if not s.is_valid():
        return Response({'success': False, 'error': 'Datos inválidos', 'details': s.errors}, status=400)
    payload = {k: v for k, v in s.validated_data.items() if v not in (None, '')}

    try:
        result = send_report_email(payload, request=request)
    except MissingEmailFields as e:
        logger.info('send-email rejected, missing %s', e.fields)
        return Response({'success': False, 'error': str(e), 'missing': e.fields}, status=400)
    except ProviderNotConfigured as e:
        logger.error('send-email: %s', e)
        return Response({'success': False, 'error': str(e)}, status=500)
    except ProviderError as e:
        return Response({'success': False, 'error': str(e), 'details': e.details, 'provider': PROVIDER}, status=500)

    return Response({
        'success': True,
        'message': 'Email enviado exitosamente',
        'messageId': result.message_id,
        'provider': result.provider,
    })

# ScopedRateThrottle reads the scope from the view class
send_email.cls.throttle_scope = 'send_email'


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def test_config(request):
    return Response({
        'success': True,
        'config': config_summary(),
        'message': 'Configuración Resend cargada',
        'timestamp': timezone.now().isoformat(),
    })
