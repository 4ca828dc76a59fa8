"""
Settings used by the pytest suite.

Runs against SQLite with eager Celery and the in-memory email backend.
"""

import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')
os.environ.setdefault('DB_ENGINE', 'django.db.backends.sqlite3')

from core.settings import *  # noqa: E402,F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test_db.sqlite3',  # noqa: F405
        'TEST': {
            'NAME': BASE_DIR / 'test_db_pytest.sqlite3',  # noqa: F405
        },
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

PAYSTACK_SECRET_KEY = 'sk_test_secret'
PAYSTACK_WEBHOOK_SECRET = 'whsec_test_secret'
PAYMENT_CALLBACK_SECRET = 'callback_test_secret'
PAYSTACK_BASE_URL = 'https://api.paystack.test'

ORDER_CURRENCY = 'INR'

LOGGING['root']['level'] = 'WARNING'  # noqa: F405
