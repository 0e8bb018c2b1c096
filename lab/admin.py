"""
Django admin registrations for the laboratory models.

Laboratories carry their feature flags, branding and module config as
JSON; they are edited here until the portal has its own settings screen.
"""

from django.contrib import admin

from .models import CallCenterRecord, ChangeLog, EmailLog, Laboratory, MedicalCase, Patient, Profile


@admin.register(Laboratory)
class LaboratoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('name', 'slug')


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'display_name', 'role', 'laboratory', 'assigned_branch', 'estado')
    list_filter = ('role', 'laboratory', 'estado')
    search_fields = ('user__username', 'display_name', 'user__email')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('nombre', 'cedula', 'laboratory', 'telefono', 'email')
    list_filter = ('laboratory',)
    search_fields = ('nombre', 'cedula', 'email')


@admin.register(MedicalCase)
class MedicalCaseAdmin(admin.ModelAdmin):
    list_display = ('code', 'exam_type', 'branch', 'patient', 'payment_status', 'doc_aprobado', 'created_at')
    list_filter = ('laboratory', 'exam_type', 'branch', 'payment_status', 'doc_aprobado')
    search_fields = ('code', 'patient__nombre', 'patient__cedula', 'treating_doctor')
    raw_id_fields = ('patient', 'created_by')


@admin.register(ChangeLog)
class ChangeLogAdmin(admin.ModelAdmin):
    list_display = ('entity_type', 'entity_id', 'field_name', 'user', 'changed_at')
    list_filter = ('laboratory', 'entity_type')
    search_fields = ('entity_id', 'field_name')


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'case_code', 'status', 'message_id', 'created_at')
    list_filter = ('status', 'provider')
    search_fields = ('recipient', 'case_code', 'message_id')


@admin.register(CallCenterRecord)
class CallCenterRecordAdmin(admin.ModelAdmin):
    list_display = ('nombre_apellido', 'motivo_llamada', 'referido_sede', 'atendido_por', 'created_at')
    list_filter = ('laboratory', 'referido_sede')
    search_fields = ('nombre_apellido', 'telefono_1', 'telefono_2')
