"""
Test settings: in-memory SQLite, in-memory mail outbox.
SQLite ignores select_for_update(); row locking is exercised on PostgreSQL only.
"""
import os

os.environ.setdefault('DATABASE_URL', 'sqlite://:memory:')

from .base import *

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    },
}

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CALENDAR_SYNC_BACKEND = ''
LEDGER_DEFAULT_CURRENCY = 'PLN'
LOGGING['root']['level'] = 'WARNING'
