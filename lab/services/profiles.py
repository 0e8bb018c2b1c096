import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError

from lab.exceptions import OrphanedProfile, UpstreamError
from lab.models import Profile

logger = logging.getLogger(__name__)


def load_profile(user) -> Profile:
    """Return the user's profile or raise :class:`OrphanedProfile`."""
    try:
        return user.profile
    except ObjectDoesNotExist:
        logger.warning('User %s is authenticated but has no profile', user.pk)
        raise OrphanedProfile()
    except DatabaseError as e:
        raise UpstreamError(f'profile lookup failed: {e}')


def profile_payload(profile: Profile) -> dict:
    user = profile.user
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'name': profile.display_name or user.get_full_name() or user.username,
        'role': profile.role,
        'assignedBranch': profile.assigned_branch,
        'estado': profile.estado,
        'laboratoryId': str(profile.laboratory_id),
    }
