"""
Test settings against a real PostgreSQL server, for the row-locking tests.

    DB_HOST=localhost DB_USER=postgres DB_PASSWORD=postgres \
        pytest --ds=config.settings.test_postgres
"""

import os

from .test import *  # noqa: F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "freight_marketplace"),
        "USER": os.getenv("DB_USER", "postgres"),
        "PASSWORD": os.getenv("DB_PASSWORD", "postgres"),
        "HOST": os.getenv("DB_HOST", "localhost"),
        "PORT": os.getenv("DB_PORT", "5432"),
        # worker threads open their own connections
        "CONN_MAX_AGE": 0,
        "TEST": {"NAME": os.getenv("DB_TEST_NAME", "test_freight_marketplace")},
    }
}
