from .base import REST_FRAMEWORK as BASE_REST_FRAMEWORK
from .base import *  # noqa

# Test settings: in-memory SQLite, no real email, no throttle state between tests
DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Throttle history lives in the cache; a dummy cache keeps tests independent
CACHES = {"default": {"BACKEND": "django.core.cache.backends.dummy.DummyCache"}}

STORAGES = {
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

NOTIFICATIONS_PUBLISHER = "notifications.publishers.InMemoryPublisher"
ORDERS_WEBHOOK_SECRET = ""
FRONTEND_URL = "http://testserver"

# Relax throttling for tests to reduce flakiness
REST_FRAMEWORK = {**BASE_REST_FRAMEWORK}
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
    **BASE_REST_FRAMEWORK.get("DEFAULT_THROTTLE_RATES", {}),
    "user": "10000/min",
    "anon": "10000/min",
    "cart": "1000/min",
    "cart_write": "1000/min",
    "orders": "1000/min",
    "orders_write": "1000/min",
    "inventory": "1000/min",
    "inventory_write": "1000/min",
}
