from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from lab.permissions import HasProfile
from lab.serializers.auth import BrandingSerializer
from lab.services.laboratories import laboratory_payload, module_settings, resolve_branding
from lab.session import BRANDING_KEY, persistence_for, session_for


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile])
def laboratory(request):
    """Tenant record of the caller: feature flags, branding, branches and module config."""
    return Response({'ok': True, 'data': laboratory_payload(session_for(request).laboratory)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile])
def laboratory_module(request, module):
    config = module_settings(session_for(request).laboratory, module)
    if config is None:
        raise NotFound(f'module {module} is not configured')
    return Response({'ok': True, 'module': module, 'data': config})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasProfile])
def session_branding(request):
    """Last branding choice of this browser session.

    GET falls back to the laboratory's own branding when nothing was stored.
    """
    store = persistence_for(request)
    if request.method == 'POST':
        s = BrandingSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        if s.validated_data['branding']:
            store.save(BRANDING_KEY, s.validated_data['branding'])
        else:
            store.clear(BRANDING_KEY)
    lab = session_for(request).laboratory
    return Response({
        'ok': True,
        'branding': store.load(BRANDING_KEY) or lab.slug,
        'theme': resolve_branding(lab),
    })
