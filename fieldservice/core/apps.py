from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'fieldservice.core'

    def ready(self):
        """Import signals when app is ready"""
        import fieldservice.core.cache_signals  # noqa: F401  # Cache invalidation signals
