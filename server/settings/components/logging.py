"""Logging configuration.

Application modules log through ``logging.getLogger(__name__)``, so every
logger below ``server`` inherits the handler configured here. Internal
consistency violations of the catalog are routed to a dedicated logger so
they can be alerted on separately from user errors.
"""

from server.settings.components import config

_LOG_LEVEL = config('CATALOG_LOG_LEVEL', default='INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            'format': '%(asctime)s %(levelname)-8s %(name)s: %(message)s',
        },
        'consistency': {
            'format': (
                '%(asctime)s CONSISTENCY %(levelname)s %(name)s: %(message)s'
            ),
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
        'consistency': {
            'class': 'logging.StreamHandler',
            'formatter': 'consistency',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'server': {
            'handlers': ['console'],
            'level': _LOG_LEVEL,
            'propagate': False,
        },
        'server.apps.catalog.consistency': {
            'handlers': ['consistency'],
            'level': 'ERROR',
            'propagate': False,
        },
    },
}
