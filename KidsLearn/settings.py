"""
Django settings for the KidsLearn project.

Values come from the environment; a local ``.env`` file is loaded first so
development machines do not need to export anything.
"""
import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")

DJANGO_ENV = os.getenv("DJANGO_ENV", "DEVELOPMENT")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY")
if not SECRET_KEY:
    if DJANGO_ENV != "DEVELOPMENT":
        raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set outside development")
    SECRET_KEY = "django-insecure-kidslearn-development-key"

DEBUG = os.getenv("DJANGO_DEBUG", "1" if DJANGO_ENV == "DEVELOPMENT" else "0") == "1"

ALLOWED_HOSTS = [host for host in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host]


INSTALLED_APPS = [
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "accounts",
    "store",
    "quiz",
    "leaderboard",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "accounts.session.SessionContextMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "KidsLearn.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.messages.context_processors.messages",
                "accounts.context_processors.session_context",
            ],
        },
    },
]

WSGI_APPLICATION = "KidsLearn.wsgi.application"


# Accounts, profiles and quiz content live in Supabase. The local database
# only backs Django's session store.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Strict"
SESSION_COOKIE_SECURE = DJANGO_ENV != "DEVELOPMENT"
CSRF_COOKIE_SECURE = DJANGO_ENV != "DEVELOPMENT"

LOGIN_URL = "login"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Claims that stop a finished quiz run from being recorded twice live here.
# Use a cache shared by every worker (e.g. Redis) when running more than one.
CACHES = {
    "default": {
        "BACKEND": os.getenv("DJANGO_CACHE_BACKEND", "django.core.cache.backends.locmem.LocMemCache"),
        "LOCATION": os.getenv("DJANGO_CACHE_LOCATION", "kidslearn"),
    }
}

QUIZ_RUN_CLAIM_TIMEOUT = int(os.getenv("QUIZ_RUN_CLAIM_TIMEOUT", str(60 * 60 * 24)))


# Credential store
# "memory" keeps everything in-process (tests, offline development),
# "supabase" talks to the hosted project.
CREDENTIAL_STORE = os.getenv("CREDENTIAL_STORE", "memory" if DJANGO_ENV == "DEVELOPMENT" else "supabase")

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
SUPABASE_TIMEOUT = int(os.getenv("SUPABASE_TIMEOUT", "10"))
SUPABASE_HEALTH_TIMEOUT = int(os.getenv("SUPABASE_HEALTH_TIMEOUT", "2"))

# Where Supabase sends people after they click the confirmation link.
EMAIL_CONFIRMATION_REDIRECT_URL = os.getenv("EMAIL_CONFIRMATION_REDIRECT_URL", "")

LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", "10"))


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "kidslearn": {
            "handlers": ["console"],
            "level": "DEBUG" if DJANGO_ENV == "DEVELOPMENT" else "INFO",
            "propagate": False,
        },
    },
}
