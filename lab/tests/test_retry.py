import asyncio

import pytest
from django.urls import reverse

from lab.models import MedicalCase
from lab.realtime.search_consumers import LatestOnly
from lab.roles import Role
from lab.services import pdf as pdf_svc
from lab.services.retry import BoundedRetry, CancelToken, RetryCancelled

from .factories import make_case, make_user


def test_retry_returns_first_result():
    r = BoundedRetry(5, 0)
    assert r.run(lambda attempt: 'ok' if attempt == 3 else None) == 'ok'
    assert r.attempts_made == 3


def test_retry_gives_up():
    r = BoundedRetry(4, 0)
    assert r.run(lambda attempt: None) is None
    assert r.attempts_made == 4


def test_retry_cancelled_before_start():
    token = CancelToken()
    token.cancel()
    with pytest.raises(RetryCancelled):
        BoundedRetry(3, 0, token).run(lambda attempt: 'never')


def test_retry_cancelled_while_waiting():
    token = CancelToken()

    def probe(attempt):
        token.cancel()
        return None

    r = BoundedRetry(3, 60, token)
    with pytest.raises(RetryCancelled):
        r.run(probe)
    assert r.attempts_made == 1


def test_retry_needs_one_attempt():
    with pytest.raises(ValueError):
        BoundedRetry(0, 1)


@pytest.mark.django_db
def test_wait_for_pdf_marks_case_ready(lab):
    case = make_case(lab, 'B1', 'Biopsia', 'Centro', informepdf_url='https://files.example.com/B1.pdf')
    assert pdf_svc.wait_for_pdf(case.id, attempts=2, delay=0) == 'https://files.example.com/B1.pdf'
    assert MedicalCase.objects.get(pk=case.pk).pdf_en_ready is True


@pytest.mark.django_db
def test_wait_for_pdf_times_out(lab):
    case = make_case(lab, 'B2', 'Biopsia', 'Centro')
    assert pdf_svc.wait_for_pdf(case.id, attempts=2, delay=0) is None
    assert MedicalCase.objects.get(pk=case.pk).pdf_en_ready is False


@pytest.mark.django_db
def test_existing_pdf_skips_webhook(lab, monkeypatch):
    def fail(*a, **kw):
        raise AssertionError('webhook called')

    monkeypatch.setattr(pdf_svc.requests, 'post', fail)
    case = make_case(lab, 'B3', 'Biopsia', 'Centro', informepdf_url='https://files.example.com/B3.pdf')
    assert pdf_svc.generate_pdf(case) == 'https://files.example.com/B3.pdf'


@pytest.mark.django_db
def test_pdf_endpoint_pending(lab, settings, monkeypatch, client_for):
    settings.PDF_POLL_ATTEMPTS = 2
    settings.PDF_POLL_DELAY = 0
    settings.PDF_WEBHOOK_URL = 'https://hooks.example.com/pdf'
    posted = []

    class Ok:
        ok = True
        status_code = 200
        text = ''

    monkeypatch.setattr(pdf_svc.requests, 'post', lambda url, **kw: posted.append((url, kw['json'])) or Ok())
    case = make_case(lab, 'B4', 'Biopsia', 'Centro')
    r = client_for(make_user(lab, Role.OWNER)).post(reverse('case_pdf', args=[case.id]))
    assert r.status_code == 202
    assert r.data['pending'] is True
    assert posted == [('https://hooks.example.com/pdf', {'caseId': case.id})]


@pytest.mark.django_db
def test_pdf_endpoint_without_webhook(lab, settings, client_for):
    settings.PDF_WEBHOOK_URL = ''
    case = make_case(lab, 'B5', 'Biopsia', 'Centro')
    r = client_for(make_user(lab, Role.OWNER)).post(reverse('case_pdf', args=[case.id]))
    assert r.status_code == 500
    assert r.data['error']['code'] == 'upstream_error'


def test_latest_only_runs_last_job():
    async def run():
        latest = LatestOnly(debounce=0.05)
        done = []

        def job(term):
            async def search():
                done.append(term)
                return term
            return search

        latest.submit(job('a'))
        latest.submit(job('ab'))
        last = latest.submit(job('abc'))
        result = await last
        return done, result, latest.pending

    done, result, pending = asyncio.run(run())
    assert done == ['abc']
    assert result == 'abc'
    assert pending is False


def test_latest_only_cancel():
    async def run():
        latest = LatestOnly(debounce=10)
        task = latest.submit(lambda: asyncio.sleep(0))
        latest.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return latest.pending

    assert asyncio.run(run()) is False
