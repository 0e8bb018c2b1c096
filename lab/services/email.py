"""
Report delivery by email through the Resend HTTP API.

The four fields in :data:`REQUIRED_FIELDS` are mandatory.  There is no
deduplication: every call is one provider request and one EmailLog row.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests
from django.conf import settings
from django.core.exceptions import ValidationError
from django.template.loader import render_to_string

from lab.models import EmailLog, Laboratory, MedicalCase

from .laboratories import resolve_branding

logger = logging.getLogger(__name__)

PROVIDER = 'Resend'
REQUIRED_FIELDS = ('patientEmail', 'patientName', 'caseCode', 'pdfUrl')


class MissingEmailFields(Exception):
    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__('Faltan datos requeridos: ' + ', '.join(self.fields))


class ProviderNotConfigured(Exception):
    pass


class ProviderError(Exception):
    def __init__(self, message: str, details: str = ''):
        super().__init__(message)
        self.details = details


@dataclass
class EmailResult:
    message_id: str
    provider: str = PROVIDER


def missing_fields(payload: dict) -> list[str]:
    return [name for name in REQUIRED_FIELDS if not str(payload.get(name) or '').strip()]


def _laboratory(laboratory_id) -> Optional[Laboratory]:
    if not laboratory_id:
        return None
    try:
        return Laboratory.objects.filter(id=laboratory_id).first()
    except (ValueError, ValidationError):
        logger.warning('Ignoring malformed laboratory_id %r', laboratory_id)
        return None


def _absolute_logo(logo: Optional[str], request=None) -> str:
    default = settings.EMAIL_DEFAULT_LOGO_URL
    if not logo or not isinstance(logo, str):
        return default
    if logo.startswith('http'):
        return logo
    if logo.startswith('/'):
        if settings.FRONTEND_URL:
            return settings.FRONTEND_URL.rstrip('/') + logo
        if request is not None:
            return request.build_absolute_uri(logo)
        return default
    return logo


def contact_link(phone: str, lab_name: str) -> dict:
    """WhatsApp link for mobiles, ``tel:`` for fixed 0212 (Caracas) lines."""
    digits = re.sub(r'\D', '', phone or '').lstrip('0')
    fixed = (digits.startswith('58') and digits[2:5] == '212') or digits.startswith('212')
    if fixed:
        href = f'tel:+{digits}' if digits else ''
    else:
        text = quote(f'Hola {lab_name}, tengo una consulta')
        href = f'https://wa.me/{digits}?text={text}'
    return {'href': href, 'label': phone, 'whatsapp': not fixed}


def build_message(payload: dict, lab: Optional[Laboratory], request=None) -> dict:
    branding = resolve_branding(lab)
    lab_name = (lab.name if lab else None) or settings.RESEND_FROM_NAME
    phone = branding.get('phone') or settings.EMAIL_DEFAULT_PHONE
    code = payload.get('caseCode') or 'N/A'
    subject = payload.get('subject')
    subject = f'{lab_name} - {subject}' if subject else f'{lab_name} - Informe Médico - Caso {code}'
    html = render_to_string('lab/report_email.html', {
        'lab_name': lab_name,
        'logo_url': _absolute_logo(branding.get('logo'), request),
        'patient_name': payload['patientName'],
        'case_code': code,
        'pdf_url': payload['pdfUrl'],
        'contact': contact_link(phone, lab_name),
        'message': payload.get('message') or '',
    })
    return {
        'from': f'{lab_name} <{settings.RESEND_FROM_EMAIL}>',
        'to': [payload['patientEmail']],
        'subject': subject,
        'html': html,
    }


def _post(message: dict) -> str:
    try:
        resp = requests.post(
            settings.RESEND_API_URL,
            json=message,
            headers={'Authorization': f'Bearer {settings.RESEND_API_KEY}'},
            timeout=settings.RESEND_TIMEOUT,
        )
    except requests.RequestException as e:
        raise ProviderError('Error al enviar el email', str(e))
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not resp.ok:
        raise ProviderError('Error al enviar el email', body.get('message') or resp.text[:500])
    return str(body.get('id') or '')


def send_report_email(payload: dict, *, request=None) -> EmailResult:
    missing = missing_fields(payload)
    if missing:
        raise MissingEmailFields(missing)
    if not settings.RESEND_API_KEY:
        raise ProviderNotConfigured('Configuración Resend incompleta. Verifica la variable RESEND_API_KEY.')

    lab = _laboratory(payload.get('laboratory_id'))
    message = build_message(payload, lab, request)
    log = EmailLog(laboratory=lab, recipient=payload['patientEmail'], case_code=payload['caseCode'], provider=PROVIDER)
    try:
        message_id = _post(message)
    except ProviderError as e:
        log.status = 'failed'
        log.error = e.details
        log.save()
        logger.error('Resend rejected email for case %s: %s', payload['caseCode'], e.details)
        raise
    log.status = 'sent'
    log.message_id = message_id
    log.save()
    if lab is not None:
        MedicalCase.objects.filter(laboratory=lab, code=payload['caseCode']).update(email_sent=True)
    logger.info('Report email for case %s sent (%s)', payload['caseCode'], message_id)
    return EmailResult(message_id=message_id)


def config_summary() -> dict:
    key = settings.RESEND_API_KEY
    return {
        'hasApiKey': bool(key),
        'fromEmail': settings.RESEND_FROM_EMAIL,
        'fromName': settings.RESEND_FROM_NAME,
        'apiKeyPrefix': key[:10] + '...' if key else 'No configurada',
        'environment': settings.ENV,
        'deployment': settings.DEPLOY_ENV,
    }
