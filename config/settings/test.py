"""Test settings: in-memory SQLite, eager Celery, fixed webhook secret."""

from .base import *  # noqa: F401,F403

DEBUG = False

# Set DB_ENGINE=django.db.backends.postgresql to run the row-locking race tests.
if DB_ENGINE == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    **STORAGES,
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

PAYMENT_WEBHOOK_SECRET = 'test_webhook_secret'
HOLD_TTL_MINUTES = 15
HOLD_DEFAULT_CURRENCY = 'USD'
