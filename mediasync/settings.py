"""
Django settings for the mediasync project.

Everything media-sync specific is prefixed with MEDIASYNC_ and can be
overridden from the environment.
"""

import os
import tempfile
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return int(value)


def env_list(name, default):
    value = os.environ.get(name)
    if value is None:
        return list(default)
    return [part.strip() for part in value.split(',') if part.strip()]


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'insecure-dev-key-change-me')
DEBUG = env_bool('DJANGO_DEBUG', True)
ALLOWED_HOSTS = env_list('DJANGO_ALLOWED_HOSTS', ['localhost', '127.0.0.1'])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'huey.contrib.djhuey',
    'mirror',
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

ROOT_URLCONF = 'mediasync.urls'

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

WSGI_APPLICATION = 'mediasync.wsgi.application'

DATA_DIR = Path(os.environ.get('MEDIASYNC_DATA_DIR', BASE_DIR / 'data'))
DATA_DIR.mkdir(parents=True, exist_ok=True)

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('MEDIASYNC_DB_PATH', str(DATA_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# Permanent asset store (Django storage API)
MEDIA_ROOT = os.environ.get('MEDIASYNC_ASSET_ROOT', str(DATA_DIR / 'assets'))
MEDIA_URL = os.environ.get('MEDIASYNC_ASSET_URL', '/assets/')

# The registry read cache is process-local and owned by the registry
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
    'media_registry': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'media-registry',
        'TIMEOUT': env_int('MEDIASYNC_REGISTRY_CACHE_TTL', 3600),
    },
}

# Huey task queue
HUEY = {
    'huey_class': 'huey.SqliteHuey',
    'name': 'mediasync',
    'filename': os.environ.get('MEDIASYNC_HUEY_DB', str(DATA_DIR / 'huey.sqlite3')),
    'immediate': env_bool('MEDIASYNC_HUEY_IMMEDIATE', False),
    'consumer': {
        'workers': env_int('MEDIASYNC_HUEY_WORKERS', 4),
        'worker_type': 'thread',
    },
}

# URL classification
MEDIASYNC_EPHEMERAL_HOST_PATTERNS = env_list(
    'MEDIASYNC_EPHEMERAL_HOST_PATTERNS',
    [
        's3.us-west-2.amazonaws.com/secure.notion-static.com',
        's3-us-west-2.amazonaws.com/secure.notion-static.com',
        'prod-files-secure.s3.us-west-2.amazonaws.com',
    ],
)
MEDIASYNC_LINK_ONLY_HOSTS = env_list(
    'MEDIASYNC_LINK_ONLY_HOSTS',
    ['images.unsplash.com', 'giphy.com', 'media.giphy.com'],
)
# 'link' or 'download' for URLs that are neither ephemeral nor link-only
MEDIASYNC_EXTERNAL_MEDIA_STRATEGY = os.environ.get('MEDIASYNC_EXTERNAL_MEDIA_STRATEGY', 'link')

# Signed URL expiry
MEDIASYNC_EXPIRY_GRACE_SECONDS = env_int('MEDIASYNC_EXPIRY_GRACE_SECONDS', 300)
# Dotted path to a callable(key) that returns a freshly signed URL, or None
MEDIASYNC_FRESH_URL_PROVIDER = os.environ.get('MEDIASYNC_FRESH_URL_PROVIDER', '')

# Downloads
MEDIASYNC_DOWNLOAD_ATTEMPTS = env_int('MEDIASYNC_DOWNLOAD_ATTEMPTS', 3)
MEDIASYNC_IMAGE_TIMEOUT = env_int('MEDIASYNC_IMAGE_TIMEOUT', 30)
MEDIASYNC_FILE_TIMEOUT = env_int('MEDIASYNC_FILE_TIMEOUT', 60)
MEDIASYNC_IMAGE_MAX_BYTES = env_int('MEDIASYNC_IMAGE_MAX_BYTES', 10 * 1024 * 1024)
MEDIASYNC_FILE_MAX_BYTES = env_int('MEDIASYNC_FILE_MAX_BYTES', 50 * 1024 * 1024)
MEDIASYNC_TEMP_DIR = os.environ.get('MEDIASYNC_TEMP_DIR', tempfile.gettempdir())

# Format normalization
MEDIASYNC_IMAGE_CONVERSION_ENABLED = env_bool('MEDIASYNC_IMAGE_CONVERSION_ENABLED', True)

# Background jobs
MEDIASYNC_JOB_RETRY_DELAY = env_int('MEDIASYNC_JOB_RETRY_DELAY', 60)
MEDIASYNC_JOB_TIMEOUT = env_int('MEDIASYNC_JOB_TIMEOUT', 600)
MEDIASYNC_LOG_PATH = os.environ.get('MEDIASYNC_LOG_PATH', str(DATA_DIR / 'logs' / 'mediasync.log'))
MEDIASYNC_LOG_RETENTION_DAYS = env_int('MEDIASYNC_LOG_RETENTION_DAYS', 30)
