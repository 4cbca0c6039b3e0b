"""
Configuração do Celery para processamento assíncrono.

Executa as rotinas agendadas do Rereports (alerta de lançamentos pendentes
e conferência de nomes divergentes) usando Redis como message broker.

Uso:
    celery -A rereports worker --loglevel=info
    celery -A rereports beat --loglevel=info
"""

import os

from celery import Celery

# Define o módulo de settings padrão do Django
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'rereports.settings')

app = Celery('rereports')

# Namespace 'CELERY' significa que todas as configurações devem começar com CELERY_
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-descobre tasks em todos os apps instalados
app.autodiscover_tasks()
