from django.apps import AppConfig


class MirrorConfig(AppConfig):
    name = 'mirror'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        """Import signals when the app is ready"""
        import mirror.signals  # noqa: F401
