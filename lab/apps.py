from django.apps import AppConfig
from django.conf import settings


class LabConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'lab'
    verbose_name = 'Laboratory portal'

    def ready(self):
        from .realtime import feed
        from .realtime.bridge import install_default_bridges

        feed.connect_signals()
        if getattr(settings, 'REALTIME_BRIDGES_ENABLED', True):
            install_default_bridges()
