import logging

from rest_framework import status
from rest_framework.exceptions import APIException, PermissionDenied
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class UpstreamError(APIException):
    """Database, email provider or webhook failure."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Upstream service failed.'
    default_code = 'upstream_error'


class OrphanedProfile(APIException):
    """Authenticated user without a profile row; the session is torn down."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'No profile is associated with this account.'
    default_code = 'orphaned_session'
    redirect = '/'


class GuardDenied(PermissionDenied):
    default_code = 'forbidden'

    def __init__(self, decision, detail=None):
        self.decision = decision
        self.redirect = decision.redirect_to
        reason = decision.reason or self.default_code
        super().__init__(detail or reason.replace('_', ' '), code=reason)
        self.error_code = reason


class TenantUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Laboratory is not available yet.'
    default_code = 'laboratory_loading'


LAB_ERRORS = (UpstreamError, OrphanedProfile, GuardDenied, TenantUnavailable)


def _sign_out(request) -> None:
    from rest_framework.authtoken.models import Token
    from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

    user = getattr(request, 'user', None)
    if user is not None and getattr(user, 'is_authenticated', False):
        Token.objects.filter(user=user).delete()
        for token in OutstandingToken.objects.filter(user=user):
            BlacklistedToken.objects.get_or_create(token=token)
        logger.warning('Signed out orphaned session for user %s', user.pk)
    session = getattr(request, 'session', None)
    if session is not None:
        session.flush()


def api_exception_handler(exc, context):
    request = context.get('request')
    if isinstance(exc, OrphanedProfile) and request is not None:
        _sign_out(request)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.error('Unhandled API error in %s', context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(exc, UpstreamError):
        logger.error('Upstream failure: %s', exc.detail, exc_info=exc)

    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    if isinstance(exc, LAB_ERRORS):
        code = getattr(exc, 'error_code', None) or exc.default_code
    else:
        code = 'api_error'
    error = {'code': code, 'message': detail}
    redirect = getattr(exc, 'redirect', None)
    if redirect:
        error['redirect'] = redirect
    resp.data = {'ok': False, 'error': error}
    return resp
