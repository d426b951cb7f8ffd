"""
Test settings. In-memory SQLite, no backoff between adjustment retries.

Usage:
    python manage.py test --settings=stocktake.settings.test
"""

from .base import *

DEPLOYMENT_MODE = 'test'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'stocktake-test',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STOCK_COUNT = {
    **STOCK_COUNT,
    'ADJUSTMENT_BACKOFF_SECONDS': 0,
    'INVENTORY_GATEWAY': 'local',
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'loggers': {
        'counts': {'handlers': ['null'], 'propagate': False},
        'stock': {'handlers': ['null'], 'propagate': False},
    },
}
