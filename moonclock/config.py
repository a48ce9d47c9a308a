"""Configuración leída de variables de entorno, con valores por defecto."""

from __future__ import annotations

import math
import os
from typing import Optional

DEFAULT_REFRESH_INTERVAL_S = 300.0
# Observatorio de Greenwich
DEFAULT_LATITUDE = 51.4769
DEFAULT_SSE_KEEPALIVE_S = 15.0
DEFAULT_CHANNEL_MAX_PENDING = 16
DEFAULT_LOG_LEVEL = "INFO"


def _parse_finite(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    # float() también acepta "nan" e "inf"
    if not math.isfinite(value):
        return None
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    value = _parse_finite(raw)
    return default if value is None else value


def _parse_latitude(raw: str) -> Optional[float]:
    lat = _parse_finite(raw)
    if lat is None or lat < -90.0 or lat > 90.0:
        return None
    return lat


def get_refresh_interval_s() -> float:
    """Segundos entre ticks del scheduler (REFRESH_INTERVAL_S, mínimo 1)."""
    return max(1.0, _float_env("REFRESH_INTERVAL_S", DEFAULT_REFRESH_INTERVAL_S))


def get_latitude() -> float:
    """Latitud del observador en grados, para la duración del día (LATITUDE).

    Valores no numéricos, no finitos o fuera de [-90, 90] vuelven a Greenwich.
    """
    raw = os.environ.get("LATITUDE", "").strip()
    if not raw:
        return DEFAULT_LATITUDE
    lat = _parse_latitude(raw)
    return DEFAULT_LATITUDE if lat is None else lat


def get_rejected_latitude() -> Optional[str]:
    """Texto de LATITUDE si se definió pero no es válido; None en otro caso."""
    raw = os.environ.get("LATITUDE", "").strip()
    if raw and _parse_latitude(raw) is None:
        return raw
    return None


def get_sse_keepalive_s() -> float:
    return max(1.0, _float_env("SSE_KEEPALIVE_S", DEFAULT_SSE_KEEPALIVE_S))


def get_channel_max_pending() -> int:
    return max(1, int(_float_env("CHANNEL_MAX_PENDING", DEFAULT_CHANNEL_MAX_PENDING)))


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL


def get_awtrix_host() -> Optional[str]:
    """URL base del reloj Awtrix (AWTRIXHOSTNAME); None desactiva el envío."""
    host = os.environ.get("AWTRIXHOSTNAME", "").strip()
    if not host:
        return None
    return host.rstrip("/")
