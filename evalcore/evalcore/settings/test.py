from .base import *  # noqa: F401,F403

# Archivo (no memoria) para que los tests con hilos compartan la BD;
# IMMEDIATE toma el lock de escritura al abrir la transacción y espera `timeout`.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        "TEST": {"NAME": BASE_DIR / "test_evalcore.sqlite3"},  # noqa: F405
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOGGING["loggers"]["evalcore"]["level"] = "WARNING"  # noqa: F405
