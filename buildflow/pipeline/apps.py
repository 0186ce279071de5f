from django.apps import AppConfig


class PipelineConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'buildflow.pipeline'

    def ready(self):
        """Import signals when app is ready"""
        import buildflow.pipeline.cache_signals  # noqa: F401  # Board cache invalidation signals
