import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import lab.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Laboratory',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('slug', models.SlugField(max_length=64, unique=True)),
                ('name', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('trial', 'Trial')], default='active', max_length=10)),
                ('features', models.JSONField(blank=True, default=lab.models._default_features)),
                ('branding', models.JSONField(blank=True, default=dict)),
                ('config', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'laboratories',
            },
        ),
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('cedula', models.CharField(db_index=True, max_length=32)),
                ('nombre', models.CharField(max_length=255)),
                ('edad', models.CharField(blank=True, max_length=20)),
                ('telefono', models.CharField(blank=True, max_length=32)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='patients', to='lab.laboratory')),
            ],
            options={
                'db_table': 'patients',
                'unique_together': {('laboratory', 'cedula')},
            },
        ),
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('owner', 'Owner'), ('medicowner', 'Medic owner'), ('employee', 'Recepcionista'), ('residente', 'Residente'), ('citotecno', 'Citotecnólogo'), ('patologo', 'Patólogo'), ('imagenologia', 'Imagenología'), ('medico_tratante', 'Médico tratante'), ('enfermero', 'Enfermero'), ('call_center', 'Call center'), ('prueba', 'Prueba (QA)')], db_index=True, default='employee', max_length=20)),
                ('display_name', models.CharField(blank=True, max_length=255)),
                ('assigned_branch', models.CharField(blank=True, max_length=100, null=True)),
                ('estado', models.CharField(choices=[('pendiente', 'Pendiente'), ('aprobado', 'Aprobado')], default='aprobado', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='profiles', to='lab.laboratory')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'profiles',
            },
        ),
        migrations.CreateModel(
            name='MedicalCase',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(db_index=True, max_length=50)),
                ('exam_type', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('consulta', models.CharField(blank=True, max_length=100)),
                ('branch', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('origin', models.CharField(blank=True, max_length=255)),
                ('treating_doctor', models.CharField(blank=True, max_length=255)),
                ('date', models.DateField(blank=True, null=True)),
                ('total_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('remaining', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('exchange_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('payment_status', models.CharField(choices=[('Incompleto', 'Incompleto'), ('Pagado', 'Pagado')], default='Incompleto', max_length=12)),
                ('doc_aprobado', models.CharField(choices=[('faltante', 'Faltante'), ('pendiente', 'Pendiente'), ('aprobado', 'Aprobado'), ('rechazado', 'Rechazado')], default='faltante', max_length=10)),
                ('pdf_en_ready', models.BooleanField(default=False)),
                ('cito_status', models.CharField(blank=True, choices=[('positivo', 'Positivo'), ('negativo', 'Negativo')], max_length=10, null=True)),
                ('email_sent', models.BooleanField(default=False)),
                ('informepdf_url', models.URLField(blank=True, max_length=1024, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_cases', to=settings.AUTH_USER_MODEL)),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cases', to='lab.laboratory')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cases', to='lab.patient')),
            ],
            options={
                'db_table': 'medical_cases',
                'indexes': [
                    models.Index(fields=['laboratory', 'created_at'], name='medical_cas_laborat_6f1c2e_idx'),
                    models.Index(fields=['laboratory', 'exam_type', 'branch'], name='medical_cas_laborat_9b7d41_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ChangeLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(max_length=64)),
                ('entity_id', models.CharField(max_length=64)),
                ('field_name', models.CharField(max_length=64)),
                ('old_value', models.TextField(blank=True, null=True)),
                ('new_value', models.TextField(blank=True, null=True)),
                ('changed_at', models.DateTimeField(auto_now_add=True)),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='change_logs', to='lab.laboratory')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'change_logs',
                'indexes': [
                    models.Index(fields=['laboratory', 'changed_at'], name='change_logs_laborat_3a5e90_idx'),
                    models.Index(fields=['entity_type', 'entity_id', 'changed_at'], name='change_logs_entity__c4d2b8_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='EmailLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recipient', models.EmailField(max_length=254)),
                ('case_code', models.CharField(blank=True, max_length=50)),
                ('status', models.CharField(choices=[('sent', 'Sent'), ('failed', 'Failed')], max_length=10)),
                ('provider', models.CharField(default='Resend', max_length=32)),
                ('message_id', models.CharField(blank=True, max_length=128)),
                ('error', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('laboratory', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='email_logs', to='lab.laboratory')),
            ],
            options={
                'db_table': 'email_logs',
            },
        ),
        migrations.CreateModel(
            name='CallCenterRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nombre_apellido', models.CharField(max_length=255)),
                ('telefono_1', models.CharField(blank=True, max_length=32, null=True)),
                ('telefono_2', models.CharField(blank=True, max_length=32, null=True)),
                ('motivo_llamada', models.TextField()),
                ('respuesta_observaciones', models.TextField(blank=True, null=True)),
                ('referido_sede', models.CharField(blank=True, max_length=100, null=True)),
                ('atendido_por', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='call_center_records', to='lab.laboratory')),
            ],
            options={
                'db_table': 'call_center_records',
            },
        ),
    ]
