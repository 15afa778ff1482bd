"""Production settings.

Sensitive values must be provided via environment variables; the process
refuses to start without a secret key or a webhook secret.
"""

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', '').split(',')

if SECRET_KEY == 'replace-me-in-production':
    raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set in production")

if not PAYMENT_WEBHOOK_SECRET:
    raise ImproperlyConfigured("PAYMENT_WEBHOOK_SECRET must be set in production")

# Configure secure proxies and cookies
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True
