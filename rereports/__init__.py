# Garante que o app do Celery seja carregado junto com o Django
from rereports.celery import app as celery_app

__all__ = ('celery_app',)
