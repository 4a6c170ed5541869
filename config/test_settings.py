# config/test_settings.py

from .settings import *

# =============================================
# TEST-SPECIFIC SETTINGS
# =============================================

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test_db.sqlite3',
        # On disk so threads in transactional tests share one database
        'TEST': {'NAME': BASE_DIR / 'test_db.sqlite3'},
        'OPTIONS': {'timeout': 20},
    }
}

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

# Remove WhiteNoise middleware
MIDDLEWARE = [m for m in MIDDLEWARE if 'whitenoise' not in m.lower()]

# Faster password hashing
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

DEBUG = False
TIME_ZONE = 'UTC'

# Quiet scheduling logs
LOGGING['loggers']['doctors']['level'] = 'WARNING'
LOGGING['loggers']['appointments']['level'] = 'WARNING'
