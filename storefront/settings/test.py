from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
ORDERS_ADMIN_EMAILS = 'ops@example.com'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.InMemoryStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

RAZORPAY = {
    'KEY_ID': 'rzp_test_key',
    'KEY_SECRET': 'rzp_test_secret',
    'BASE_URL': 'https://rzp.example.com',
    'TIMEOUT': 5,
}

PHONEPE = {
    'MERCHANT_ID': 'MERCHANTUAT',
    'SALT_KEY': 'salt-key',
    'SALT_INDEX': '1',
    'BASE_URL': 'https://phonepe.example.com',
    'REDIRECT_URL': 'https://shop.example.com/payment/return',
    'CALLBACK_URL': 'https://shop.example.com/api/orders/phonepe/callback/',
    'TIMEOUT': 5,
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {'null': {'class': 'logging.NullHandler'}},
    'root': {'handlers': ['null'], 'level': 'CRITICAL'},
}
