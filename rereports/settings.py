"""
Settings do projeto Rereports.

Todas as configurações sensíveis ou dependentes de ambiente são lidas de
variáveis de ambiente (carregadas do arquivo .env via python-dotenv), com
valores padrão adequados para desenvolvimento local.
"""

import os
import sys
from pathlib import Path

from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


TESTING = 'pytest' in sys.modules or bool(os.environ.get('PYTEST_CURRENT_TEST'))

SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-rereports-dev-key')

DEBUG = _env_bool('DEBUG', True)

ALLOWED_HOSTS = [h.strip() for h in os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'core',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'rereports.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'rereports.wsgi.application'

# Banco de dados: PostgreSQL quando DB_NAME estiver definido, SQLite caso contrário
if os.environ.get('DB_NAME'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('DB_NAME'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
            'CONN_MAX_AGE': int(os.environ.get('DB_CONN_MAX_AGE', '60')),
            'OPTIONS': {
                # Limita consultas para que nenhuma operação bloqueie indefinidamente
                'options': f"-c statement_timeout={int(os.environ.get('DB_STATEMENT_TIMEOUT_MS', '10000'))}",
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
            'OPTIONS': {'timeout': 10},
        }
    }

AUTH_USER_MODEL = 'core.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'pt-br'
TIME_ZONE = os.environ.get('TIME_ZONE', 'America/Sao_Paulo')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'EXCEPTION_HANDLER': 'core.views.api.domain_exception_handler',
}

# E-mail (alertas de lançamentos pendentes)
EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.environ.get('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', '587'))
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = _env_bool('EMAIL_USE_TLS', True)
EMAIL_TIMEOUT = int(os.environ.get('EMAIL_TIMEOUT', '10'))
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'Rereports <noreply@rereports.local>')

# Celery: Redis quando REDIS_URL estiver definido, broker em memória caso contrário
REDIS_URL = os.environ.get('REDIS_URL')
CELERY_BROKER_URL = REDIS_URL or 'memory://'
CELERY_RESULT_BACKEND = REDIS_URL or 'cache+memory://'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = TESTING
CELERY_BEAT_SCHEDULE = {
    'alerta-lancamentos-pendentes': {
        'task': 'core.tasks.check_pending_expenses',
        'schedule': crontab(hour=8, minute=0),
    },
    'conferencia-nomes-divergentes': {
        'task': 'core.tasks.detect_name_inconsistencies_task',
        'schedule': crontab(hour=6, minute=30),
    },
}

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} [{levelname}] {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        '': {'handlers': ['console'], 'level': LOG_LEVEL},
        'django.request': {'handlers': ['console'], 'level': 'WARNING', 'propagate': False},
    },
}

# =============================================================================
# Domínio: ciclo de lançamentos e trilha de auditoria
# =============================================================================

# Modo mock: resolve roles a partir de usuários fixos em memória
REREPORTS_MOCK_MODE = _env_bool('REREPORTS_MOCK_MODE', False)

REREPORTS_ROLE_RESOLVER = os.environ.get(
    'REREPORTS_ROLE_RESOLVER',
    'core.services.roles.FixtureRoleResolver' if REREPORTS_MOCK_MODE
    else 'core.services.roles.DatabaseRoleResolver',
)

REREPORTS_MOCK_USERS = {
    'colaborador@empresa.com': {'nome': 'João Silva', 'roles': ['COLABORADOR']},
    'rh@empresa.com': {'nome': 'Maria Santos', 'roles': ['RH']},
    'financeiro@empresa.com': {'nome': 'Carlos Oliveira', 'roles': ['FINANCEIRO']},
}

REREPORTS_AUDIT_APPEND_RETRIES = int(os.environ.get('REREPORTS_AUDIT_APPEND_RETRIES', '3'))
REREPORTS_LOOKUP_TIMEOUT = float(os.environ.get('REREPORTS_LOOKUP_TIMEOUT', '5'))
REREPORTS_LOOKUP_CONCURRENCY = int(os.environ.get('REREPORTS_LOOKUP_CONCURRENCY', '4'))
REREPORTS_ACCOUNT_LOOKUP_URL = os.environ.get('REREPORTS_ACCOUNT_LOOKUP_URL', '')
REREPORTS_ACCOUNT_LOOKUP_TOKEN = os.environ.get('REREPORTS_ACCOUNT_LOOKUP_TOKEN', '')
REREPORTS_PENDING_ALERT_DAYS = int(os.environ.get('REREPORTS_PENDING_ALERT_DAYS', '3'))
