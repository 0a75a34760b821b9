import tempfile

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

MEDIA_ROOT = tempfile.mkdtemp(prefix="marketplace-media-")

MAPBOX_API_KEY = ""
STRIPE_SECRET_KEY = "sk_test_dummy"

JWT_SECRET = "test-secret"

MARKETPLACE_LOG_LEVEL = "WARNING"
LOGGING["loggers"]["marketplace"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["accounts"]["level"] = "WARNING"  # noqa: F405
