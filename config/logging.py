import os

from decouple import config

LOGS_DIR = config('LOGS_DIR', default=os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs'))
os.makedirs(LOGS_DIR, exist_ok=True)

LOG_LEVEL = config('LOG_LEVEL', default='INFO')

# Apps whose loggers go to both console and the rotating file
APP_LOGGERS = ('users', 'banks', 'marketplace', 'orders', 'documents', 'blockchain', 'config')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': os.path.join(LOGS_DIR, 'hex-port.log'),
            'maxBytes': 10 * 1024 * 1024,
            'backupCount': 5,
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.db.backends': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'celery': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
        # web3 logs every RPC round-trip at DEBUG
        'web3': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        **{
            name: {'handlers': ['console', 'file'], 'level': LOG_LEVEL, 'propagate': False}
            for name in APP_LOGGERS
        },
    },
}
