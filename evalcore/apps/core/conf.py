from __future__ import annotations

from typing import Any

from django.conf import settings

DEFAULTS = {
    "REQUIRED_EVALUATOR_PERCENTAGE": 75,
    "DEFAULT_MIN_SCORE": 1,
    "DEFAULT_MAX_SCORE": 10,
    "SCORE_DECIMAL_PLACES": 4,
    "DEFAULT_EVALUATOR_WEIGHT": "1.0",
}


def engine_setting(name: str) -> Any:
    """Lee una clave de settings.EVALCORE, con los valores por defecto del motor."""
    if name not in DEFAULTS:
        raise KeyError(f"Clave EVALCORE desconocida: {name}")
    overrides = getattr(settings, "EVALCORE", None) or {}
    return overrides.get(name, DEFAULTS[name])
