"""
Report PDF generation.

The PDF itself is rendered by an external webhook that writes the
document URL back onto the case row.  We trigger it and then wait for
the URL with a bounded retry.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests
from django.conf import settings

from lab.exceptions import UpstreamError
from lab.models import MedicalCase

from .retry import BoundedRetry, CancelToken

logger = logging.getLogger(__name__)


def webhook_url(case: MedicalCase) -> Optional[str]:
    return case.laboratory.webhook('generatePdf') or getattr(settings, 'PDF_WEBHOOK_URL', '') or None


def trigger_pdf(case: MedicalCase) -> None:
    url = webhook_url(case)
    if not url:
        raise UpstreamError('PDF webhook is not configured for this laboratory.')
    try:
        resp = requests.post(
            url,
            json={'caseId': case.id},
            headers={'Accept': 'application/json'},
            timeout=settings.PDF_WEBHOOK_TIMEOUT,
        )
    except requests.RequestException as e:
        raise UpstreamError(f'PDF webhook unreachable: {e}')
    if not resp.ok:
        logger.error('PDF webhook answered %s for case %s: %s', resp.status_code, case.id, resp.text[:500])
        raise UpstreamError(f'PDF webhook failed: HTTP {resp.status_code}')
    logger.info('PDF generation requested for case %s', case.id)


def _stored_url(case_id: int) -> Optional[str]:
    return MedicalCase.objects.filter(id=case_id).values_list('informepdf_url', flat=True).first() or None


def wait_for_pdf(case_id: int, *, attempts: Optional[int] = None, delay: Optional[float] = None,
                 cancel: Optional[CancelToken] = None) -> Optional[str]:
    retry = BoundedRetry(
        attempts if attempts is not None else settings.PDF_POLL_ATTEMPTS,
        delay if delay is not None else settings.PDF_POLL_DELAY,
        cancel,
    )
    url = retry.run(lambda attempt: _stored_url(case_id))
    if url:
        MedicalCase.objects.filter(id=case_id).update(pdf_en_ready=True)
    return url


def generate_pdf(case: MedicalCase, *, cancel: Optional[CancelToken] = None) -> Optional[str]:
    """Return the report URL, or None if it is not ready within the retry window."""
    if case.informepdf_url:
        return case.informepdf_url
    trigger_pdf(case)
    return wait_for_pdf(case.id, cancel=cancel)
