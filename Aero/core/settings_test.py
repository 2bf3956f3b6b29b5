from .settings import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
}

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PUBLIC_BASE_URL = "https://aero.test"
TRACKING_ALLOWED_ORIGINS = ["https://app.aero.test"]

RESEND_API_KEY = "re_test_key"
META_WHATSAPP_TOKEN = ""
META_WHATSAPP_PHONE_ID = ""

TRACK_STREAM_INTERVAL = 0
TRACK_STREAM_MAX_SECONDS = 5

SOS_NOTIFY_RATE_LIMIT = 1000
