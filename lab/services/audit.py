from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model

from lab.models import ChangeLog

User = get_user_model()


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def record_changes(*, user: Optional[User], laboratory_id, entity_type: str, entity_id, before: Dict[str, Any], after: Dict[str, Any]) -> list[ChangeLog]:
    """One ChangeLog row per field whose value actually changed."""
    rows = [
        ChangeLog(
            user=user if getattr(user, 'pk', None) else None,
            laboratory_id=laboratory_id,
            entity_type=entity_type, entity_id=str(entity_id),
            field_name=name, old_value=_text(before.get(name)), new_value=_text(value),
        )
        for name, value in after.items()
        if _text(before.get(name)) != _text(value)
    ]
    # saved one by one so the realtime signals fire for each row
    for row in rows:
        row.save()
    return rows


def list_changes(laboratory_id, *, entity_type: Optional[str] = None, entity_id=None, limit: int = 100) -> list[dict]:
    qs = ChangeLog.objects.filter(laboratory_id=laboratory_id).select_related('user')
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id is not None:
        qs = qs.filter(entity_id=str(entity_id))
    return [{
        'id': c.id,
        'entityType': c.entity_type,
        'entityId': c.entity_id,
        'field': c.field_name,
        'oldValue': c.old_value,
        'newValue': c.new_value,
        'user': c.user.get_username() if c.user else None,
        'changedAt': c.changed_at,
    } for c in qs.order_by('-changed_at', '-id')[:limit]]
