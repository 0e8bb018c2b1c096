"""
Authentication views.

Username/password login returns both a DRF token (``Authorization:
Token <key>``) and a JWT pair.  ``select-role`` is the demo role selector:
with ``MOCK_AUTH=1`` it signs in as the seeded user of the chosen role
(see the ``ensure_test_users`` command) and remembers the choice in the
session.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .roles import Role, home_path
from .serializers.auth import LoginSerializer, SelectRoleSerializer
from .services.laboratories import laboratory_payload, load_laboratory
from .services.profiles import load_profile, profile_payload
from .session import MOCK_ROLE_KEY, persistence_for, session_for

logger = logging.getLogger(__name__)

User = get_user_model()

MOCK_USERNAME = 'mock_{role}'


def _session_payload(user) -> dict:
    """Tokens plus the resolved profile; raises OrphanedProfile if there is none."""
    profile = load_profile(user)
    lab = load_laboratory(profile.laboratory_id)
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    role = Role(profile.role)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': role.value,
        'home': home_path(role),
        'user': profile_payload(profile),
        'laboratory': laboratory_payload(lab) if lab else None,
    }


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        logger.info('Failed login for %s from %s', username, request.META.get('REMOTE_ADDR'))
        return Response({'ok': False, 'detail': 'Usuario o contraseña incorrectos'}, status=400)

    payload = _session_payload(user)
    logger.info('User %s logged in as %s', user.pk, payload['role'])
    return Response(payload, status=200)

# ScopedRateThrottle reads the scope from the view class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Drop the DRF token and blacklist the user's refresh tokens."""
    Token.objects.filter(user=request.user).delete()
    count = 0
    refresh = request.data.get('refresh') if hasattr(request.data, 'get') else None
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError as e:
            raise ValidationError({'refresh': str(e)})
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    persistence_for(request).clear(MOCK_ROLE_KEY)
    return Response({'ok': True, 'blacklisted': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    ctx = session_for(request)
    return Response({
        'ok': True,
        'role': ctx.role.value if ctx.role else None,
        'home': home_path(ctx.role),
        'user': profile_payload(ctx.profile),
        'laboratory': laboratory_payload(ctx.laboratory) if ctx.laboratory else None,
        'mockRole': persistence_for(request).load(MOCK_ROLE_KEY),
    })


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def select_role_view(request):
    if not settings.MOCK_AUTH:
        raise NotFound()
    store = persistence_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'role': store.load(MOCK_ROLE_KEY), 'roles': [r.value for r in Role]})

    s = SelectRoleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    role = Role(s.validated_data['role'])
    user = User.objects.filter(username=MOCK_USERNAME.format(role=role.value), is_active=True).first()
    if user is None:
        raise NotFound(f'no demo user for role {role.value}; run manage.py ensure_test_users')
    store.save(MOCK_ROLE_KEY, role.value)
    logger.info('Mock login as %s', role.value)
    return Response(_session_payload(user))
