import logging
from django.apps import AppConfig

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Core (Organization)'

    services = None

    def ready(self):
        from core.container import build_services
        self.services = build_services()
        logger.debug('[startup] Services wired: %s', ', '.join(self.services.names()))
