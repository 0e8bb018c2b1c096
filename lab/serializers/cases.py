import bleach
from rest_framework import serializers

from lab.models import MedicalCase
from lab.services.cases import SORT_FIELDS, CaseQuery, Pagination


class CaseListQuerySerializer(serializers.Serializer):
    searchTerm = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, max_length=200)
    examType = serializers.CharField(required=False, allow_blank=True)
    documentStatus = serializers.ChoiceField(choices=[c[0] for c in MedicalCase.DOC_STATUS_CHOICES], required=False)
    pdfStatus = serializers.ChoiceField(choices=['pendientes', 'faltantes'], required=False)
    citoStatus = serializers.ChoiceField(choices=[c[0] for c in MedicalCase.CITO_STATUS_CHOICES], required=False)
    branch = serializers.CharField(required=False, allow_blank=True)
    branches = serializers.ListField(child=serializers.CharField(), required=False)
    paymentStatus = serializers.ChoiceField(choices=[c[0] for c in MedicalCase.PAYMENT_STATUS_CHOICES], required=False)
    doctors = serializers.ListField(child=serializers.CharField(), required=False)
    origins = serializers.ListField(child=serializers.CharField(), required=False)
    consulta = serializers.CharField(required=False, allow_blank=True)
    emailSent = serializers.BooleanField(required=False, allow_null=True, default=None)
    dateFrom = serializers.DateField(required=False)
    dateTo = serializers.DateField(required=False)
    sortField = serializers.ChoiceField(choices=sorted(SORT_FIELDS), required=False)
    sortDirection = serializers.ChoiceField(choices=['asc', 'desc'], required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=500)

    def validate(self, attrs):
        if attrs.get('dateFrom') and attrs.get('dateTo') and attrs['dateFrom'] > attrs['dateTo']:
            raise serializers.ValidationError('dateFrom must not be after dateTo')
        return attrs

    def to_case_query(self) -> CaseQuery:
        v = self.validated_data
        return CaseQuery(
            search=v.get('searchTerm'),
            exam_type=v.get('examType') or None,
            document_status=v.get('documentStatus'),
            pdf_status=v.get('pdfStatus'),
            cito_status=v.get('citoStatus'),
            branch=v.get('branch'),
            branches=tuple(v.get('branches') or ()),
            payment_status=v.get('paymentStatus'),
            doctors=tuple(v.get('doctors') or ()),
            origins=tuple(v.get('origins') or ()),
            consulta=v.get('consulta') or None,
            email_sent=v.get('emailSent'),
            date_from=v.get('dateFrom'),
            date_to=v.get('dateTo'),
            sort_field=v.get('sortField') or 'created_at',
            sort_direction=v.get('sortDirection') or 'desc',
        )

    def to_pagination(self):
        v = self.validated_data
        if not v.get('page') and not v.get('pageSize'):
            return None
        return Pagination(page=v.get('page') or 1, page_size=v.get('pageSize') or 20)


def query_data(params) -> dict:
    """QueryDict -> plain dict, keeping repeated keys as lists."""
    data = {}
    for key in params.keys():
        if key in ('branches', 'doctors', 'origins'):
            values = []
            for raw in params.getlist(key):
                values.extend(p for p in raw.split(',') if p.strip())
            data[key] = values
        elif params.get(key) != '':
            data[key] = params.get(key)
    return data


class CaseUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = MedicalCase
        fields = [
            'exam_type', 'consulta', 'branch', 'origin', 'treating_doctor', 'date', 'total_amount',
            'remaining', 'exchange_rate', 'payment_status', 'doc_aprobado', 'pdf_en_ready',
            'cito_status', 'email_sent', 'informepdf_url',
        ]
        extra_kwargs = {f: {'required': False} for f in fields}

    def _text(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_treating_doctor(self, v):
        return self._text(v)

    def validate_origin(self, v):
        return self._text(v)

    def validate_consulta(self, v):
        return self._text(v)
