from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def parse_iso_datetime_utc(when_iso_utc: Optional[str]) -> datetime:
    """Convierte ISO 8601 a datetime UTC; sin valor devuelve la hora actual.

    Acepta el sufijo Z. Una fecha sin zona horaria se interpreta como UTC.
    """
    if not when_iso_utc:
        return datetime.now(timezone.utc)
    s = when_iso_utc.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(
            "Fecha/hora inválida. Use ISO 8601, por ejemplo: 2024-01-01T02:30:00Z"
        )
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt
