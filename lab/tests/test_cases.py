"""
Case listing tests.

Visibility is decided by the caller's role and assigned branch before any
user filter; these tests seed one laboratory with a case of each exam
type in two branches and check what each role gets back.
"""
import io
import re
from datetime import datetime
from decimal import Decimal
from unittest import mock

from django.http import QueryDict
from django.utils import timezone
from openpyxl import load_workbook
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from lab.models import ChangeLog, MedicalCase
from lab.roles import Role
from lab.serializers.cases import query_data
from lab.services.cases import CaseQuery, Pagination, filter_rows_locally
from lab.services.export import SHEET_NAME, build_cases_workbook, export_filename

from .factories import make_case, make_lab, make_user


class CaseVisibilityTests(APITestCase):
    def setUp(self) -> None:
        self.lab = make_lab('conspat')
        self.other_lab = make_lab('otro')
        self.b1 = make_case(self.lab, 'B1', 'Biopsia', 'Centro', treating_doctor='Dr. Pérez')
        self.b2 = make_case(self.lab, 'B2', 'Biopsia', 'Norte', payment_status='Pagado', pdf_en_ready=True)
        self.c1 = make_case(self.lab, 'C1', 'Citología', 'Centro', remaining=Decimal('40.00'))
        self.i1 = make_case(self.lab, 'I1', 'Inmunohistoquímica', 'Norte')
        make_case(self.other_lab, 'X1', 'Biopsia', 'Centro')

    def authenticate(self, role, branch=None) -> APIClient:
        user = make_user(self.lab, role, branch=branch)
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def codes(self, response):
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        return {row['code'] for row in response.data['data']}

    def test_residente_sees_only_biopsies_of_own_branch(self):
        client = self.authenticate(Role.RESIDENTE, branch='Centro')
        self.assertEqual(self.codes(client.get('/api/cases')), {'B1'})

    def test_branch_filter_cannot_widen_scope(self):
        client = self.authenticate(Role.RESIDENTE, branch='Centro')
        self.assertEqual(self.codes(client.get('/api/cases', {'branch': 'Norte'})), set())

    def test_citotecno_sees_only_cytology(self):
        client = self.authenticate(Role.CITOTECNO)
        self.assertEqual(self.codes(client.get('/api/cases')), {'C1'})

    def test_patologo_sees_biopsy_and_ihq(self):
        client = self.authenticate(Role.PATOLOGO)
        self.assertEqual(self.codes(client.get('/api/cases')), {'B1', 'B2', 'I1'})

    def test_owner_sees_whole_tenant_only(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(self.codes(client.get('/api/cases')), {'B1', 'B2', 'C1', 'I1'})

    def test_exam_type_alias(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(self.codes(client.get('/api/cases', {'examType': 'biopsia'})), {'B1', 'B2'})

    def test_whitespace_search_is_ignored(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(len(self.codes(client.get('/api/cases', {'searchTerm': '   '}))), 4)

    def test_search_matches_doctor_and_patient(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(self.codes(client.get('/api/cases', {'searchTerm': 'pérez'})), {'B1'})
        self.assertEqual(self.codes(client.get('/api/cases', {'searchTerm': 'Paciente C1'})), {'C1'})

    def test_pdf_status(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(self.codes(client.get('/api/cases', {'pdfStatus': 'faltantes'})), {'B2'})
        self.assertEqual(self.codes(client.get('/api/cases', {'pdfStatus': 'pendientes'})), {'B1', 'C1', 'I1'})

    def test_branches_list_param(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(self.codes(client.get('/api/cases', {'branches': 'Norte'})), {'B2', 'I1'})

    def test_branches_match_exactly_with_and_without_pagination(self):
        client = self.authenticate(Role.OWNER)
        self.assertEqual(self.codes(client.get('/api/cases', {'branches': 'norte'})), set())
        self.assertEqual(self.codes(client.get('/api/cases', {'branches': 'norte', 'page': 1, 'pageSize': 10})), set())

    def test_paginated_listing_filters_once_in_database(self):
        client = self.authenticate(Role.OWNER)
        with mock.patch('lab.services.cases.filter_rows_locally', side_effect=AssertionError('second pass')):
            r = client.get('/api/cases', {'page': 2, 'pageSize': 3, 'sortField': 'code', 'sortDirection': 'asc'})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['count'], 4)
        self.assertEqual(r.data['totalPages'], 2)
        self.assertEqual(r.data['page'], 2)
        self.assertEqual([row['code'] for row in r.data['data']], ['I1'])

    def test_unpaginated_listing_filters_locally(self):
        client = self.authenticate(Role.OWNER)
        with mock.patch('lab.services.cases.filter_rows_locally', wraps=filter_rows_locally) as local:
            r = client.get('/api/cases', {'paymentStatus': 'Pagado'})
        self.assertEqual(self.codes(r), {'B2'})
        local.assert_called_once()

    def test_invalid_dates_are_rejected(self):
        client = self.authenticate(Role.OWNER)
        r = client.get('/api/cases', {'dateFrom': '2024-05-02', 'dateTo': '2024-05-01'})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['ok'])

    def test_cases_feature_disabled(self):
        self.lab.features = {'hasCases': False}
        self.lab.save()
        client = self.authenticate(Role.PRUEBA)
        r = client.get('/api/cases')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(r.data['error']['code'], 'feature_disabled')
        self.assertEqual(r.data['error']['redirect'], '/prueba/home')

    def test_patch_records_changes(self):
        client = self.authenticate(Role.OWNER)
        r = client.patch(f'/api/cases/{self.b1.id}', {'payment_status': 'Pagado', 'origin': '<img src=x>Clinica Sur'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK, r.data)
        self.assertEqual(r.data['data']['origin'], 'Clinica Sur')
        logs = ChangeLog.objects.filter(entity_type='medical_case', entity_id=str(self.b1.id))
        self.assertEqual({c.field_name for c in logs}, {'payment_status', 'origin'})
        log = logs.get(field_name='payment_status')
        self.assertEqual((log.old_value, log.new_value), ('Incompleto', 'Pagado'))

    def test_scoped_role_cannot_move_case_out_of_scope(self):
        client = self.authenticate(Role.RESIDENTE, branch='Centro')
        r = client.patch(f'/api/cases/{self.b1.id}', {'branch': 'Norte'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = client.patch(f'/api/cases/{self.b1.id}', {'exam_type': 'Citología', 'payment_status': 'Pagado'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        case = MedicalCase.objects.get(pk=self.b1.pk)
        self.assertEqual((case.branch, case.exam_type, case.payment_status), ('Centro', 'Biopsia', 'Incompleto'))
        self.assertFalse(ChangeLog.objects.filter(entity_id=str(self.b1.id)).exists())

    def test_unscoped_role_can_move_case(self):
        client = self.authenticate(Role.OWNER)
        r = client.patch(f'/api/cases/{self.b1.id}', {'branch': 'Norte'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK, r.data)
        self.assertEqual(r.data['data']['branch'], 'Norte')

    def test_patch_outside_visibility_is_404(self):
        client = self.authenticate(Role.RESIDENTE, branch='Centro')
        r = client.patch(f'/api/cases/{self.c1.id}', {'payment_status': 'Pagado'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(MedicalCase.objects.get(pk=self.c1.pk).payment_status, 'Incompleto')

    def test_stats(self):
        client = self.authenticate(Role.OWNER)
        r = client.get('/api/cases/stats')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data['data']
        self.assertEqual(data['totalCases'], 4)
        self.assertEqual(data['totalRevenue'], Decimal('400.00'))
        self.assertEqual(data['pendingAmount'], Decimal('40.00'))
        self.assertEqual(data['byPaymentStatus'], {'Incompleto': 3, 'Pagado': 1})

    def test_stats_are_scoped(self):
        client = self.authenticate(Role.CITOTECNO)
        self.assertEqual(client.get('/api/cases/stats').data['data']['totalCases'], 1)

    def test_export_xlsx(self):
        client = self.authenticate(Role.OWNER)
        r = client.get('/api/cases/export', {'paymentStatus': 'Pagado', 'columns': 'code,branch'})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertIn('spreadsheetml', r['Content-Type'])
        self.assertRegex(
            r['Content-Disposition'],
            r'attachment; filename="casos_medicos_\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}_filtrado_estado_Pagado\.xlsx"',
        )
        sheet = load_workbook(io.BytesIO(r.content))[SHEET_NAME]
        rows = list(sheet.iter_rows(values_only=True))
        self.assertEqual(rows[0], ('Código', 'Sede'))
        self.assertEqual(rows[1:], [('B2', 'Norte')])


def test_case_query_drops_empty_params():
    q = CaseQuery(search='  ', exam_type='citologia', branches=('', ' Centro '))
    params = q.as_params()
    assert 'searchTerm' not in params
    assert params['examType'] == 'Citología'
    assert params['branches'] == ['Centro']
    assert params['sortField'] == 'created_at'


def test_case_query_falls_back_to_default_sort():
    q = CaseQuery(sort_field='password', sort_direction='sideways')
    assert (q.sort_field, q.sort_direction) == ('created_at', 'desc')


def test_pagination_offset():
    assert Pagination(3, 20).offset == 40
    try:
        Pagination(0, 20)
    except ValueError:
        pass
    else:
        raise AssertionError('page 0 accepted')


def test_query_data_splits_lists():
    params = QueryDict('branches=Centro,Norte&branches=Este&searchTerm=&examType=biopsia')
    assert query_data(params) == {'branches': ['Centro', 'Norte', 'Este'], 'examType': 'biopsia'}


def test_filter_rows_locally():
    rows = [
        {'code': 'A', 'branch': 'centro', 'nombre': 'Ana', 'pdf_en_ready': False, 'doc_aprobado': None, 'total_amount': 5},
        {'code': 'B', 'branch': 'Norte', 'nombre': 'Beto', 'pdf_en_ready': True, 'doc_aprobado': 'aprobado', 'total_amount': 9},
        {'code': 'C', 'branch': 'Centro', 'nombre': 'Carla', 'pdf_en_ready': False, 'doc_aprobado': 'Faltante', 'total_amount': 7},
    ]
    got = filter_rows_locally(rows, CaseQuery(branches=('CENTRO',), sort_field='total_amount', sort_direction='asc'))
    assert got == []
    got = filter_rows_locally(rows, CaseQuery(branches=('Centro',), sort_field='total_amount', sort_direction='asc'))
    assert [r['code'] for r in got] == ['C']
    got = filter_rows_locally(rows, CaseQuery(document_status='faltante'))
    assert {r['code'] for r in got} == {'A', 'C'}
    got = filter_rows_locally(rows, CaseQuery(search='bet', pdf_status='faltantes'))
    assert [r['code'] for r in got] == ['B']


def test_export_filename():
    now = timezone.make_aware(datetime(2024, 3, 5, 14, 30, 0))
    q = CaseQuery(payment_status='Incompleto', branch='Centro', search='x')
    assert export_filename(q, now=now) == 'casos_medicos_2024-03-05_14-30-00_filtrado_estado_Incompleto_sede_Centro_busqueda.xlsx'
    assert export_filename(None, now=now) == 'casos_medicos_2024-03-05_14-30-00.xlsx'
    assert re.match(r'^casos_medicos_', export_filename())


def test_export_keeps_formula_like_text_as_text():
    payload = '=HYPERLINK("http://example.com","x")'
    content = build_cases_workbook([{'code': 'B1', 'nombre': payload}], [('code', 'Código'), ('nombre', 'Paciente')])
    cell = load_workbook(io.BytesIO(content))[SHEET_NAME]['B2']
    assert cell.data_type == 's'
    assert cell.value == payload
