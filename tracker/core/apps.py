from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tracker.core'

    def ready(self):
        """Import signals when app is ready"""
        import tracker.core.cache_signals  # noqa: F401  # Report cache invalidation signals
