import bleach
from rest_framework import serializers


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class CallCenterRecordSerializer(serializers.Serializer):
    nombre_apellido = serializers.CharField(max_length=255)
    telefono_1 = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=32)
    telefono_2 = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=32)
    motivo_llamada = serializers.CharField()
    respuesta_observaciones = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    referido_sede = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    atendido_por = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)

    def validate_nombre_apellido(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('El nombre es obligatorio')
        return v

    def validate_motivo_llamada(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('El motivo de la llamada es obligatorio')
        return v

    def validate(self, attrs):
        # optional text: blank -> NULL
        for name in ('telefono_1', 'telefono_2', 'respuesta_observaciones', 'referido_sede', 'atendido_por'):
            if name in attrs:
                attrs[name] = _clean(attrs[name]) or None
        return attrs
