from pathlib import Path
import os

# === Paths ===
# base.py está en: <root>/evalcore/evalcore/settings/base.py
BASE_DIR = Path(__file__).resolve().parents[3]  # <root>

# === Seguridad / Debug ===
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-key-change-me")
DEBUG = os.environ.get("DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# === Apps ===
# El motor no expone HTTP: solo auth (evaluadores/dueños) y las apps del proyecto.
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # Apps del proyecto
    "evalcore.apps.core",
    "evalcore.apps.competitions",
    "evalcore.apps.judging",
    "evalcore.apps.scheduling",
    "evalcore.apps.leaderboard",
]

# === Base de datos (SQLite por defecto) ===
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# === i18n / tz ===
LANGUAGE_CODE = "es"
TIME_ZONE = "America/New_York"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# === Motor de evaluación ===
EVALCORE = {
    # % mínimo de evaluadores asignados que deben puntuar para que el agregado sea válido
    "REQUIRED_EVALUATOR_PERCENTAGE": int(os.environ.get("EVALCORE_REQUIRED_EVALUATOR_PERCENTAGE", "75")),
    # Rango por defecto de cada criterio al configurar etapas
    "DEFAULT_MIN_SCORE": int(os.environ.get("EVALCORE_DEFAULT_MIN_SCORE", "1")),
    "DEFAULT_MAX_SCORE": int(os.environ.get("EVALCORE_DEFAULT_MAX_SCORE", "10")),
    "SCORE_DECIMAL_PLACES": 4,
    "DEFAULT_EVALUATOR_WEIGHT": "1.0",
}

# === Logging ===
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "evalcore": {
            "handlers": ["console"],
            "level": os.environ.get("EVALCORE_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
