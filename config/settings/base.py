import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()  # take environment variables from .env.

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv("SECRET_KEY", "django-insecure-change-this")
# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = [
    host.strip() for host in os.getenv("ALLOWED_HOSTS", "").split(",") if host.strip()
]


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party
    "crispy_forms",
    "crispy_tailwind",
    # My apps
    "accounts.apps.AccountsConfig",
    "marketplace.apps.MarketplaceConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # JSON error envelope for /api/
    "marketplace.middleware.ApiErrorMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
                # my context processors
                "marketplace.context_processors.layout_context",
            ],
        },
    },
]

# Crispy Forms
CRISPY_ALLOWED_TEMPLATE_PACKS = ["tailwind"]
CRISPY_TEMPLATE_PACK = "tailwind"

WSGI_APPLICATION = "config.wsgi.application"


# Database
# https://docs.djangoproject.com/en/5.0/ref/settings/#databases

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "freight_marketplace"),
        "USER": os.getenv("DB_USER", "postgres"),
        "PASSWORD": os.getenv("DB_PASSWORD", "postgres"),
        "HOST": os.getenv("DB_HOST", "localhost"),
        "PORT": os.getenv("DB_PORT", "5432"),
        "CONN_MAX_AGE": 600,
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Password validation

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


AUTH_USER_MODEL = "accounts.User"
LOGIN_REDIRECT_URL = "dashboard"
LOGOUT_REDIRECT_URL = "login"


# Static files (CSS, JavaScript, Images)

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"


# Settings for USER MEDIA
# invoice documents are written here through default_storage
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"


# EMAIL SETTINGS
EMAIL_BACKEND = os.getenv(
    "EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend"
)
EMAIL_HOST = os.getenv("SMTP_HOST", "localhost")
EMAIL_PORT = int(os.getenv("SMTP_PORT", "587"))
EMAIL_HOST_USER = os.getenv("SMTP_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("SMTP_PASS", "")
EMAIL_USE_TLS = os.getenv("SMTP_USE_TLS", "True") == "True"
EMAIL_TIMEOUT = 10
DEFAULT_FROM_EMAIL = os.getenv("EMAIL_FROM", "Freight Marketplace <noreply@example.com>")


# LOGGING
MARKETPLACE_LOG_LEVEL = os.getenv("MARKETPLACE_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "marketplace": {
            "handlers": ["console"],
            "level": MARKETPLACE_LOG_LEVEL,
            "propagate": False,
        },
        "accounts": {
            "handlers": ["console"],
            "level": MARKETPLACE_LOG_LEVEL,
            "propagate": False,
        },
    },
}


# AUTH TOKENS (bearer JWT for the JSON API)
JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24)))


# EXTERNAL PROVIDERS
MAPBOX_API_KEY = os.getenv("MAPBOX_API_KEY", "")
MAPBOX_BASE_URL = os.getenv("MAPBOX_BASE_URL", "https://api.mapbox.com")
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")

# seconds; outbound Mapbox calls
MARKETPLACE_HTTP_TIMEOUT = float(os.getenv("MARKETPLACE_HTTP_TIMEOUT", "8"))

MARKETPLACE_GEOCODER = "marketplace.services.geocoding.MapboxGeocoder"
MARKETPLACE_PAYMENT_GATEWAY = "marketplace.services.payments.StripeGateway"
MARKETPLACE_DOCUMENT_GENERATOR = (
    "marketplace.services.documents.InvoiceDocumentGenerator"
)


# BUSINESS RULES
MARKETPLACE_CURRENCY = "EUR"
MARKETPLACE_PLATFORM_FEE_PERCENT = Decimal(
    os.getenv("PLATFORM_FEE_PERCENTAGE", "10")
)
# Percent, keyed by ISO-3166 alpha-2 country code
MARKETPLACE_VAT_RATES = {
    "PT": Decimal("23"),
    "ES": Decimal("21"),
    "FR": Decimal("20"),
    "DE": Decimal("19"),
    "IT": Decimal("22"),
    "NL": Decimal("21"),
    "BE": Decimal("21"),
}
MARKETPLACE_DEFAULT_VAT_RATE = Decimal("20")

MARKETPLACE_INVOICE_DUE_DAYS = 30
MARKETPLACE_INVOICE_PREFIX = os.getenv("INVOICE_PREFIX", "INV")

# False keeps the load ACCEPTED without a trip when the carrier has no
# active+available vehicle; True refuses the acceptance instead.
MARKETPLACE_REQUIRE_VEHICLE_ON_ACCEPT = (
    os.getenv("REQUIRE_VEHICLE_ON_ACCEPT", "False") == "True"
)
