"""
Base settings for the stocktake project.
Shared between local (branch) and cloud deployments.
"""

from pathlib import Path
import os

from django.urls import reverse_lazy

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-q3v@0k!t7c#stocktake-dev-only-8w2m^r5x(1z')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    "unfold",
    "unfold.contrib.filters",
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'stock',
    'counts',
    'corsheaders',
    'rest_framework',
    'drf_spectacular',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'stocktake.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'stocktake.wsgi.application'


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# CORS
CORS_ALLOW_ALL_ORIGINS = True


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# STOCK COUNT ENGINE
# =============================================================================
STOCK_COUNT = {
    # Variance classification policy (percent of system quantity, absolute)
    'VARIANCE_MINOR_PERCENT': float(os.getenv('VARIANCE_MINOR_PERCENT', '5')),
    'VARIANCE_MODERATE_PERCENT': float(os.getenv('VARIANCE_MODERATE_PERCENT', '15')),

    # Count strategies
    'CYCLE_COUNT_DAYS': int(os.getenv('CYCLE_COUNT_DAYS', '30')),
    'SPOT_SAMPLE_PERCENT': int(os.getenv('SPOT_SAMPLE_PERCENT', '10')),

    # Inventory adjustments
    'ADJUSTMENT_MAX_ATTEMPTS': int(os.getenv('ADJUSTMENT_MAX_ATTEMPTS', '3')),
    'ADJUSTMENT_BACKOFF_SECONDS': float(os.getenv('ADJUSTMENT_BACKOFF_SECONDS', '0.5')),
    'ADJUSTMENT_TIMEOUT_SECONDS': float(os.getenv('ADJUSTMENT_TIMEOUT_SECONDS', '10')),

    # 'local' applies adjustments through the stock app, 'http' calls a remote inventory API
    'INVENTORY_GATEWAY': os.getenv('INVENTORY_GATEWAY', 'local'),
    'INVENTORY_API_URL': os.getenv('INVENTORY_API_URL', ''),
    'INVENTORY_API_TOKEN': os.getenv('INVENTORY_API_TOKEN', ''),

    'MAX_PAGE_SIZE': int(os.getenv('MAX_PAGE_SIZE', '100')),
}


# Unfold Admin Configuration
UNFOLD = {
    "SITE_TITLE": "Stocktake Admin",
    "SITE_HEADER": "Stocktake",
    "SITE_URL": "/",
    "SITE_SYMBOL": "inventory",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": True,
        "navigation": [
            {
                "title": "Stock Counts",
                "separator": True,
                "items": [
                    {
                        "title": "Counts",
                        "icon": "fact_check",
                        "link": reverse_lazy("admin:counts_count_changelist"),
                    },
                    {
                        "title": "Approvals",
                        "icon": "verified",
                        "link": reverse_lazy("admin:counts_countapproval_changelist"),
                    },
                ],
            },
            {
                "title": "Inventory",
                "separator": True,
                "items": [
                    {
                        "title": "Stock Items",
                        "icon": "inventory_2",
                        "link": reverse_lazy("admin:stock_stockitem_changelist"),
                    },
                    {
                        "title": "Adjustments",
                        "icon": "swap_vert",
                        "link": reverse_lazy("admin:stock_stockadjustment_changelist"),
                    },
                ],
            },
        ],
    },
}

REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',

    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],

    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
}


SPECTACULAR_SETTINGS = {
    'TITLE': 'Stocktake',
    'DESCRIPTION': 'Inventory count & variance reconciliation API',
    'VERSION': '1.0.0',
}
