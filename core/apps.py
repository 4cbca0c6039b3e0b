from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuração do app core do Rereports."""
    # Nota: Modelos do Rereports usam UUIDField explicitamente como pk
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Core - Lançamentos e Auditoria'
