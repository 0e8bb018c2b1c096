from django.db import DatabaseError

from lab.exceptions import UpstreamError
from lab.models import CallCenterRecord

from .cache import CALL_CENTER, cached

RECORD_FIELDS = (
    'id', 'nombre_apellido', 'telefono_1', 'telefono_2', 'motivo_llamada',
    'respuesta_observaciones', 'referido_sede', 'atendido_por', 'created_at', 'created_by_id',
)


def create_record(laboratory, data: dict, user=None) -> dict:
    try:
        rec = CallCenterRecord.objects.create(
            laboratory=laboratory,
            created_by=user if getattr(user, 'pk', None) else None,
            **data,
        )
    except DatabaseError as e:
        raise UpstreamError(f'could not save call record: {e}')
    return {f: getattr(rec, f) for f in RECORD_FIELDS}


def list_records(laboratory_id) -> list[dict]:
    def fetch():
        qs = CallCenterRecord.objects.filter(laboratory_id=laboratory_id).order_by('-created_at', '-id')
        return list(qs.values(*RECORD_FIELDS))

    return cached(CALL_CENTER, (str(laboratory_id),), fetch)
