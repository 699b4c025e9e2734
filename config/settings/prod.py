"""
Production settings
"""
from .base import *

DEBUG = False

SECURE_SSL_REDIRECT = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# Production database (must be PostgreSQL); missing DATABASE_URL raises on startup
_default_db = env.db('DATABASE_URL')
_default_db.setdefault('CONN_MAX_AGE', 60)
DATABASES['default'] = _default_db
