"""
Django settings for the Hex-Port backend.

Values come from the environment (or a local .env file) through
python-decouple, so the same module serves development, tests and
deployments.
"""
from pathlib import Path
from datetime import timedelta
from decouple import config, Csv
from dotenv import load_dotenv

from .logging import LOGGING  # noqa: F401

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')

SECRET_KEY = config('SECRET_KEY', default='django-insecure-hex-port-development-key')
DEBUG = config('DEBUG', default=True, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'graphene_django',
    'users',
    'banks',
    'marketplace',
    'orders',
    'documents',
    'blockchain',
]

MIDDLEWARE = [
    'config.middleware.CloseDbConnectionsMiddleware',
    'config.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'banks.middleware.BankUserMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

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

WSGI_APPLICATION = 'config.wsgi.application'

# Database
DB_ENGINE = config('DB_ENGINE', default='django.db.backends.sqlite3')
if DB_ENGINE == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': config('DB_NAME', default=str(BASE_DIR / 'db.sqlite3')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': config('DB_NAME', default='hexport'),
            'USER': config('DB_USER', default='hexport'),
            'PASSWORD': config('DB_PASSWORD', default=''),
            'HOST': config('DB_HOST', default='localhost'),
            'PORT': config('DB_PORT', default='5432'),
            'CONN_MAX_AGE': config('DB_CONN_MAX_AGE', default=60, cast=int),
        }
    }

AUTH_USER_MODEL = 'users.User'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
]

AUTHENTICATION_BACKENDS = [
    'users.backends.SessionJSONWebTokenBackend',
    'django.contrib.auth.backends.ModelBackend',
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = config('MEDIA_ROOT', default=str(BASE_DIR / 'media'))
FILE_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024
DATA_UPLOAD_MAX_MEMORY_SIZE = 25 * 1024 * 1024
UPLOAD_MAX_FILE_SIZE = config('UPLOAD_MAX_FILE_SIZE', default=10 * 1024 * 1024, cast=int)

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'hex-port',
    }
}

# GraphQL
GRAPHENE = {
    'SCHEMA': 'config.schema.schema',
    'MIDDLEWARE': [
        'graphql_jwt.middleware.JSONWebTokenMiddleware',
    ],
}

# Wallet-user tokens
JWT_ACCESS_EXPIRES_HOURS = config('JWT_ACCESS_EXPIRES_HOURS', default=24, cast=int)
JWT_REFRESH_EXPIRES_DAYS = config('JWT_REFRESH_EXPIRES_DAYS', default=7, cast=int)
JWT_ISSUER = config('JWT_ISSUER', default='hex-port-api')
JWT_AUDIENCE = config('JWT_AUDIENCE', default='hex-port-users')

GRAPHQL_JWT = {
    'JWT_SECRET_KEY': config('JWT_SECRET', default=SECRET_KEY),
    'JWT_ALGORITHM': 'HS256',
    'JWT_VERIFY_EXPIRATION': True,
    'JWT_EXPIRATION_DELTA': timedelta(hours=JWT_ACCESS_EXPIRES_HOURS),
    'JWT_REFRESH_EXPIRATION_DELTA': timedelta(days=JWT_REFRESH_EXPIRES_DAYS),
    'JWT_AUTH_HEADER_PREFIX': 'Bearer',
    'JWT_ISSUER': JWT_ISSUER,
    'JWT_AUDIENCE': JWT_AUDIENCE,
    'JWT_PAYLOAD_HANDLER': 'users.jwt.jwt_payload_handler',
    'JWT_ALLOW_ARGUMENT': False,
}

WALLET_NONCE_TTL_MINUTES = config('WALLET_NONCE_TTL_MINUTES', default=10, cast=int)
WALLET_SIGNATURE_VERIFICATION = config('WALLET_SIGNATURE_VERIFICATION', default=True, cast=bool)
AUTO_ISSUE_DID = config('AUTO_ISSUE_DID', default=True, cast=bool)

# Bank officer tokens
BANK_JWT_SECRET = config('BANK_JWT_SECRET', default=SECRET_KEY)
BANK_ACCESS_TOKEN_EXPIRY_HOURS = config('BANK_ACCESS_TOKEN_EXPIRY_HOURS', default=8, cast=int)
BANK_AUTH_COOKIE_NAME = 'bank_auth_token'

# Hedera / escrow
HEDERA_NETWORK = config('HEDERA_NETWORK', default='testnet')
HEDERA_ACCOUNT_ID = config('HEDERA_ACCOUNT_ID', default='')
HEDERA_PRIVATE_KEY = config('HEDERA_PRIVATE_KEY', default='')
HEDERA_TESTNET_RPC = config('HEDERA_TESTNET_RPC', default='https://testnet.hashio.io/api')
HEDERA_HCS_TOPIC_ID = config('HEDERA_HCS_TOPIC_ID', default='')
ESCROW_ARTIFACT_PATH = config('ESCROW_ARTIFACT_PATH', default=str(BASE_DIR / 'contracts' / 'TradeEscrow.json'))
ESCROW_AUTO_DEPLOY = config('ESCROW_AUTO_DEPLOY', default=False, cast=bool)
ESCROW_TX_TIMEOUT = config('ESCROW_TX_TIMEOUT', default=120, cast=int)

# IPFS
IPFS_API_URL = config('IPFS_API_URL', default='http://127.0.0.1:5001')
IPFS_GATEWAY_URL = config('IPFS_GATEWAY_URL', default='https://ipfs.io')
IPFS_TIMEOUT = config('IPFS_TIMEOUT', default=30, cast=int)

# CORS
CORS_ALLOWED_ORIGINS = config('CORS_ALLOWED_ORIGINS', default='http://localhost:5173,http://localhost:3000', cast=Csv())

# Celery
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='memory://')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='cache+memory://')
CELERY_TASK_ALWAYS_EAGER = config('CELERY_TASK_ALWAYS_EAGER', default=True, cast=bool)
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE

# Rate limits (requests per window)
RATE_LIMITS = {
    'wallet_nonce': {'window': 60, 'max_attempts': 20},
    'wallet_connect': {'window': 60, 'max_attempts': 10},
    'bank_login': {'window': 300, 'max_attempts': 10},
}
