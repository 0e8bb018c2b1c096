"""
Database models for the laboratory portal.

A :class:`Laboratory` is one tenant.  Every user has a :class:`Profile`
bound to exactly one laboratory, and everything else (patients, cases,
call-center records) is scoped to a laboratory as well.  Field names on
the clinical tables follow the column names the frontend already uses
so rows can be returned without renaming.
"""
from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models

from .features import Feature
from .roles import Role


def _default_features() -> dict:
    return {f.value: False for f in Feature}


class Laboratory(models.Model):
    """A tenant organization with its own feature flags and branch list."""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('trial', 'Trial'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    features = models.JSONField(default=_default_features, blank=True)
    # logo, icon, favicon, primaryColor, secondaryColor, phone
    branding = models.JSONField(default=dict, blank=True)
    # branches, examTypes, webhooks, modules
    config = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'laboratories'

    def __str__(self) -> str:
        return f"{self.name} ({self.slug})"

    @property
    def branches(self) -> list[str]:
        return list((self.config or {}).get('branches') or [])

    def module_config(self, module: str) -> dict | None:
        return ((self.config or {}).get('modules') or {}).get(module)

    def webhook(self, name: str) -> str | None:
        return ((self.config or {}).get('webhooks') or {}).get(name) or None


class Profile(models.Model):
    """Role, branch and tenant of an authenticated user."""
    ESTADO_CHOICES = [
        ('pendiente', 'Pendiente'),
        ('aprobado', 'Aprobado'),
    ]
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='profile')
    laboratory = models.ForeignKey(Laboratory, on_delete=models.PROTECT, related_name='profiles')
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.EMPLOYEE, db_index=True)
    display_name = models.CharField(max_length=255, blank=True)
    # Some roles only work at a single site of the tenant
    assigned_branch = models.CharField(max_length=100, null=True, blank=True)
    estado = models.CharField(max_length=10, choices=ESTADO_CHOICES, default='aprobado')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'profiles'

    def __str__(self) -> str:
        return f"{self.display_name or self.user.get_username()} ({self.role})"


class Patient(models.Model):
    laboratory = models.ForeignKey(Laboratory, on_delete=models.CASCADE, related_name='patients')
    cedula = models.CharField(max_length=32, db_index=True)
    nombre = models.CharField(max_length=255)
    edad = models.CharField(max_length=20, blank=True)
    telefono = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patients'
        unique_together = [('laboratory', 'cedula')]

    def __str__(self) -> str:
        return f"{self.nombre} ({self.cedula})"


class MedicalCase(models.Model):
    PAYMENT_STATUS_CHOICES = [
        ('Incompleto', 'Incompleto'),
        ('Pagado', 'Pagado'),
    ]
    DOC_STATUS_CHOICES = [
        ('faltante', 'Faltante'),
        ('pendiente', 'Pendiente'),
        ('aprobado', 'Aprobado'),
        ('rechazado', 'Rechazado'),
    ]
    CITO_STATUS_CHOICES = [
        ('positivo', 'Positivo'),
        ('negativo', 'Negativo'),
    ]

    laboratory = models.ForeignKey(Laboratory, on_delete=models.CASCADE, related_name='cases')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='cases')
    code = models.CharField(max_length=50, db_index=True)
    exam_type = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    consulta = models.CharField(max_length=100, blank=True)
    branch = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    origin = models.CharField(max_length=255, blank=True)
    treating_doctor = models.CharField(max_length=255, blank=True)
    date = models.DateField(null=True, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    remaining = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    exchange_rate = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    payment_status = models.CharField(max_length=12, choices=PAYMENT_STATUS_CHOICES, default='Incompleto')
    doc_aprobado = models.CharField(max_length=10, choices=DOC_STATUS_CHOICES, default='faltante')
    pdf_en_ready = models.BooleanField(default=False)
    cito_status = models.CharField(max_length=10, choices=CITO_STATUS_CHOICES, null=True, blank=True)
    email_sent = models.BooleanField(default=False)
    informepdf_url = models.URLField(max_length=1024, null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='created_cases'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'medical_cases'
        indexes = [
            models.Index(fields=['laboratory', 'created_at'], name='medical_cas_laborat_6f1c2e_idx'),
            models.Index(fields=['laboratory', 'exam_type', 'branch'], name='medical_cas_laborat_9b7d41_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.exam_type})"


class ChangeLog(models.Model):
    """Field-level audit trail for edits made through the portal."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    laboratory = models.ForeignKey(Laboratory, on_delete=models.CASCADE, related_name='change_logs')
    entity_type = models.CharField(max_length=64)
    entity_id = models.CharField(max_length=64)
    field_name = models.CharField(max_length=64)
    old_value = models.TextField(null=True, blank=True)
    new_value = models.TextField(null=True, blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'change_logs'
        indexes = [
            models.Index(fields=['laboratory', 'changed_at'], name='change_logs_laborat_3a5e90_idx'),
            models.Index(fields=['entity_type', 'entity_id', 'changed_at'], name='change_logs_entity__c4d2b8_idx'),
        ]


class EmailLog(models.Model):
    STATUS_CHOICES = [
        ('sent', 'Sent'),
        ('failed', 'Failed'),
    ]
    laboratory = models.ForeignKey(Laboratory, on_delete=models.SET_NULL, null=True, blank=True, related_name='email_logs')
    recipient = models.EmailField()
    case_code = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    provider = models.CharField(max_length=32, default='Resend')
    message_id = models.CharField(max_length=128, blank=True)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'email_logs'


class CallCenterRecord(models.Model):
    laboratory = models.ForeignKey(Laboratory, on_delete=models.CASCADE, related_name='call_center_records')
    nombre_apellido = models.CharField(max_length=255)
    telefono_1 = models.CharField(max_length=32, null=True, blank=True)
    telefono_2 = models.CharField(max_length=32, null=True, blank=True)
    motivo_llamada = models.TextField()
    respuesta_observaciones = models.TextField(null=True, blank=True)
    referido_sede = models.CharField(max_length=100, null=True, blank=True)
    atendido_por = models.CharField(max_length=255, null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'call_center_records'
