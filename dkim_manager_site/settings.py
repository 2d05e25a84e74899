"""
Django settings for the dkim-manager webhook server and controller.

Every DKIM_MANAGER_* setting can be overridden from the environment.
"""

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dkim-manager-insecure-development-key')
DEBUG = _env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', '*').split(',')

INSTALLED_APPS = [
    'dkim_manager',
]

MIDDLEWARE = [
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'dkim_manager_site.urls'
WSGI_APPLICATION = 'dkim_manager_site.wsgi.application'

# No models; the cluster is the only datastore.
DATABASES = {}

USE_TZ = True
APPEND_SLASH = False

# dkim-manager
DKIM_MANAGER_NAMESPACE = os.environ.get('DKIM_MANAGER_NAMESPACE', '')
DKIM_MANAGER_NAMESPACED = _env_bool('DKIM_MANAGER_NAMESPACED', False)
DKIM_MANAGER_SERVICE_ACCOUNT = os.environ.get('DKIM_MANAGER_SERVICE_ACCOUNT', '')
DKIM_MANAGER_FIELD_MANAGER = os.environ.get('DKIM_MANAGER_FIELD_MANAGER', 'dkim-manager')
DKIM_MANAGER_WEBHOOKS_ENABLED = _env_bool('DKIM_MANAGER_WEBHOOKS_ENABLED', True)
DKIM_MANAGER_RESYNC_INTERVAL = int(os.environ.get('DKIM_MANAGER_RESYNC_INTERVAL', '300'))

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'dkim_manager': {
            'handlers': ['console'],
            'level': os.environ.get('DKIM_MANAGER_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
