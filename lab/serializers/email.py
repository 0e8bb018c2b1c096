from rest_framework import serializers


class SendEmailSerializer(serializers.Serializer):
    """Shape of the optional fields; required ones are checked by the email service."""
    patientEmail = serializers.EmailField(required=False, allow_blank=True)
    patientName = serializers.CharField(required=False, allow_blank=True, max_length=255)
    caseCode = serializers.CharField(required=False, allow_blank=True, max_length=50)
    pdfUrl = serializers.URLField(required=False, allow_blank=True, max_length=2048)
    laboratory_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    subject = serializers.CharField(required=False, allow_blank=True, max_length=200)
    message = serializers.CharField(required=False, allow_blank=True, max_length=2000)
