"""
Django settings for intent_backend project.
"""

from pathlib import Path
import os
from dotenv import load_dotenv

# Load .env from the project root, so it works when run from repo root or from intent_backend
_project_root = Path(__file__).resolve().parent.parent
load_dotenv(_project_root / ".env")

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = _project_root


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/5.0/howto/deployment/checklist/

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-change-this-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() in ('true', '1', 'yes')

# Comma-separated list; APP_DOMAIN is appended when the platform sets it
_default_hosts = 'localhost,127.0.0.1,testserver'
_app_domain = os.getenv('APP_DOMAIN', '')
if _app_domain:
    _default_hosts = _default_hosts + ',' + _app_domain
ALLOWED_HOSTS = [h.strip() for h in os.getenv('ALLOWED_HOSTS', _default_hosts).split(',') if h.strip()]


# Application definition

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'rest_framework',
    'corsheaders',
    'intents',
    'ai',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'intent_backend.middleware.APICommonMiddleware',
]

ROOT_URLCONF = 'intent_backend.urls'

WSGI_APPLICATION = 'intent_backend.wsgi.application'


# Database
# The analysis engine is stateless; the database only backs Django internals.

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
    }
}


# Cache (rate limit counters)

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'intent-backend',
    }
}


# Internationalization

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Analysis payloads can carry tens of thousands of phrases
DATA_UPLOAD_MAX_MEMORY_SIZE = int(os.getenv('DATA_UPLOAD_MAX_MEMORY_SIZE', str(50 * 1024 * 1024)))

# REST Framework configuration
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.AllowAny',
    ),
    'DEFAULT_RENDERER_CLASSES': (
        'rest_framework.renderers.JSONRenderer',
    ),
    'DEFAULT_PARSER_CLASSES': (
        'rest_framework.parsers.JSONParser',
    ),
    'UNAUTHENTICATED_USER': None,
    # Proxies in front of the app; 0 trusts REMOTE_ADDR and ignores X-Forwarded-For
    'NUM_PROXIES': int(os.getenv('NUM_PROXIES', '0')),
}

# CORS Settings
# Add production origins via CORS_ALLOWED_ORIGINS_EXTRA (comma-separated)
_cors_extra = os.getenv('CORS_ALLOWED_ORIGINS_EXTRA', '')
CORS_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
] + [o.strip() for o in _cors_extra.split(',') if o.strip()]


# Analysis service limits
# Per-IP analyses, e.g. "3/day"; empty disables the limit
ANALYSIS_THROTTLE_RATE = os.getenv('ANALYSIS_THROTTLE_RATE', '3/day') or None
# Simultaneous analyses and how long a request waits for a slot (seconds)
ANALYSIS_MAX_CONCURRENT = int(os.getenv('ANALYSIS_MAX_CONCURRENT', '15'))
ANALYSIS_QUEUE_TIMEOUT = float(os.getenv('ANALYSIS_QUEUE_TIMEOUT', '300'))

# Engine overrides, any AnalysisConfig field (see intents/engine/config.py)
INTENT_ANALYSIS = {
    'stopword_top_n': int(os.getenv('STOPWORD_TOP_N', '5')),
    'seam_timeout': float(os.getenv('AI_SEAM_TIMEOUT', '180')),
}


# Logging

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
    },
}
