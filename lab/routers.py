"""
URL mappings for the laboratory portal API.

Paths have no trailing slash, matching what the frontend calls.
"""
from django.urls import include, path

from .auth_views import login_view, logout_view, me_view, select_role_view
from .views import call_center, cases, changelog, email, health, laboratory, navigation

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Report email
    path('api/send-email', email.send_email, name='send_email'),
    path('api/test-config', email.test_config, name='test_config'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/logout', logout_view, name='logout_view'),
    path('api/auth/me', me_view, name='me_view'),
    path('api/auth/select-role', select_role_view, name='select_role_view'),
    # Session / tenant
    path('api/session/branding', laboratory.session_branding, name='session_branding'),
    path('api/laboratory', laboratory.laboratory, name='laboratory'),
    path('api/laboratory/modules/<str:module>', laboratory.laboratory_module, name='laboratory_module'),
    # Navigation
    path('api/navigation', navigation.navigation, name='navigation'),
    path('api/navigation/resolve', navigation.resolve_navigation, name='navigation_resolve'),
    path('api/pages/<str:area>', navigation.page, name='page_index'),
    path('api/pages/<str:area>/<str:segment>', navigation.page, name='page'),
    # Cases
    path('api/cases', cases.cases, name='cases'),
    path('api/cases/stats', cases.cases_stats, name='cases_stats'),
    path('api/cases/export', cases.export_cases, name='cases_export'),
    path('api/cases/<int:pk>', cases.case_detail, name='case_detail'),
    path('api/cases/<int:pk>/pdf', cases.case_pdf, name='case_pdf'),
    # Call center / audit
    path('api/call-center/records', call_center.call_center_records, name='call_center_records'),
    path('api/changelog', changelog.changelog, name='changelog'),
]
