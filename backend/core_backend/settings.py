"""
Django settings for the pricing engine backend.

Only the pieces the pricing, payments and reports apps rely on are configured
here: installed apps, caches, logging, REST framework and the pricing knobs
(platform fee, exchange-rate source). Values come from the environment with
safe defaults so tests run without a .env file.
"""

import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-development-key")

DEBUG = os.environ.get("DEBUG", "False").lower() in ("true", "1", "yes")

ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    # Local apps
    "core_backend",
    "settings",
    "products",
    "cart",
    "orders",
    "payments",
    "reports",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("SQLITE_PATH", ":memory:"),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

# =============================================================================
# CACHES
# =============================================================================

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "pricing-default",
        "TIMEOUT": 300,
    },
}

# =============================================================================
# REST FRAMEWORK
# =============================================================================

REST_FRAMEWORK = {
    "COERCE_DECIMAL_TO_STRING": True,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "UNAUTHENTICATED_USER": None,
}

# =============================================================================
# PRICING
# =============================================================================

# Fixed platform fee retained per order, always charged in USD.
PLATFORM_FEE_USD = Decimal(os.environ.get("PLATFORM_FEE_USD", "1.95"))

DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")

# Live exchange rates are optional; an empty URL keeps the static fallback table.
EXCHANGE_RATE_API_URL = os.environ.get("EXCHANGE_RATE_API_URL", "")
EXCHANGE_RATE_TIMEOUT = float(os.environ.get("EXCHANGE_RATE_TIMEOUT", "3"))
EXCHANGE_RATE_CACHE_TTL = int(os.environ.get("EXCHANGE_RATE_CACHE_TTL", "3600"))

# Stripe (payment-provider boundary only)
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {funcName}:{lineno} - {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
        "orders": {"level": LOG_LEVEL},
        "cart": {"level": LOG_LEVEL},
        "products": {"level": LOG_LEVEL},
        "payments": {"level": LOG_LEVEL},
        "reports": {"level": LOG_LEVEL},
        "settings": {"level": LOG_LEVEL},
        "core_backend": {"level": LOG_LEVEL},
    },
}
