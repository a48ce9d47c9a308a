"""Envío de instantáneas a un reloj LED Awtrix como apps personalizadas.

El reloj expone ``POST {host}/api/custom?name=<app>`` con un cuerpo JSON
``{name, text, save, effect, icon}``. Cada instantánea se convierte en una
app por métrica; las métricas nulas se omiten.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from broadcaster import Broadcaster, ChannelClosedError
from log import get_logger, log_info, log_warn
from snapshot import serialize
from store import SnapshotStore

logger = get_logger("moonclock.awtrix")

MAX_ATTEMPTS = 3
RETRY_DELAY_S = 2.0
TIMEOUT_S = 5.0


@dataclass(frozen=True)
class AwtrixApp:
    name: str
    text: str
    icon: str


def _days(value: Any) -> str:
    return f"{int(value)}d"


# (app, campo del documento, formato, icono)
_METRICS = [
    ("fullmoon", "daysUntilFullMoon", _days, "FullMoon"),
    ("summersolstice", "daysUntilSummerSolstice", _days, "SUMMER"),
    ("wintersolstice", "daysUntilWinterSolstice", _days, "WINTER"),
    ("marsDistanceAu", "marsDistanceAu", lambda v: f"{v:.1f}au", "MARS"),
    ("jupiterDistanceAu", "jupiterDistanceAu", lambda v: f"{v:.1f}au", "JUPITER"),
    ("saturnDistanceAu", "saturnDistanceAu", lambda v: f"{v:.1f}au", "SATURN"),
    ("CurrentDayLength", "daylightHours", lambda v: f"{v:.1f}hrs", "DAYLENGTH"),
    ("voyager1", "voyager1DistanceAu", lambda v: f"V1:{v:.0f}au", "VOYAGER"),
    ("voyager2", "voyager2DistanceAu", lambda v: f"V2:{v:.0f}au", "VOYAGER"),
    ("newhorizons", "newHorizonsDistanceAu", lambda v: f"NH:{v:.0f}au", "NEWHORIZONS"),
    ("perihelion", "daysUntilPerihelion", _days, "PERIHELION"),
    ("aphelion", "daysUntilAphelion", _days, "PERIHELION"),
    ("earthSpeed", "earthSpeedKmPerSec", lambda v: f"{v:.1f}km/s", "EARTH"),
    ("moonDistance", "moonDistanceKm", lambda v: f"{v:,.0f}km", "MOON"),
    ("lightMars", "lightTimeEarthToMars", lambda v: f"Lt:{v}", "LIGHT"),
    ("lightJupiter", "lightTimeEarthToJupiter", lambda v: f"Lt:{v}", "LIGHT"),
]


def build_apps(document: Dict[str, Any]) -> List[AwtrixApp]:
    icon = document.get("moonPhaseIcon") or "FullMoon"
    apps = [AwtrixApp("moonphase", str(document["moonPhaseName"]), icon)]
    illumination = document.get("moonIlluminationPercent")
    if illumination is not None:
        apps.append(AwtrixApp("moonillumination", f"{illumination:.0f}%", icon))
    for name, key, fmt, app_icon in _METRICS:
        value = document.get(key)
        if value is None:
            continue
        apps.append(AwtrixApp(name, fmt(value), app_icon))
    return apps


class AwtrixClient:
    def __init__(
        self,
        host: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay_s: float = RETRY_DELAY_S,
    ) -> None:
        self.host = host.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.host, timeout=TIMEOUT_S)
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_s = retry_delay_s
        self.success_count = 0
        self.failure_count = 0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check_connectivity(self) -> bool:
        """Consulta /api/stats una vez; solo registra, los envíos se intentan igual."""
        try:
            response = await self._client.get("/api/stats")
        except httpx.HTTPError as exc:
            log_warn(logger, "awtrix not reachable, pushes will fail until it comes online", host=self.host, error=str(exc))
            return False
        if response.is_success:
            log_info(logger, "awtrix reachable", host=self.host, status=response.status_code)
            return True
        log_warn(logger, "awtrix responded with unexpected status", host=self.host, status=response.status_code)
        return False

    async def send_app(self, app: AwtrixApp) -> bool:
        body = {"name": app.name, "text": app.text, "save": "1", "effect": "", "icon": app.icon}
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.post("/api/custom", params={"name": app.name}, json=body)
                response.raise_for_status()
                self.success_count += 1
                return True
            except httpx.HTTPError as exc:
                if attempt < self.max_attempts:
                    log_warn(logger, "awtrix send failed, retrying", app=app.name, attempt=attempt, error=str(exc))
                    await asyncio.sleep(self.retry_delay_s)
                else:
                    log_warn(logger, "awtrix send failed", app=app.name, attempts=self.max_attempts, error=str(exc))
        self.failure_count += 1
        return False

    async def push(self, document: Dict[str, Any]) -> int:
        """Envía todas las apps de un documento; devuelve cuántas aceptó el reloj.

        Si una app agota sus reintentos el reloj se considera caído y el resto
        de la instantánea se descarta.
        """
        apps = build_apps(document)
        sent = 0
        for app in apps:
            if not await self.send_app(app):
                log_warn(logger, "awtrix unreachable, skipping rest of snapshot", skipped=len(apps) - sent - 1)
                break
            sent += 1
        log_info(logger, "awtrix update summary", succeeded=self.success_count, failed=self.failure_count)
        return sent

    async def run(self, broadcaster: Broadcaster, store: SnapshotStore) -> None:
        """Sigue al broadcaster hasta la cancelación; se vuelve a suscribir si lo descartan."""
        current = store.current()
        if current is not None:
            await self.push(json.loads(serialize(current)))
        while True:
            channel_id = broadcaster.subscribe()
            channel = broadcaster.channel(channel_id)
            try:
                while channel is not None:
                    payload = await channel.receive()
                    await self.push(json.loads(payload))
            except ChannelClosedError:
                log_warn(logger, "awtrix subscription dropped, resubscribing")
            finally:
                broadcaster.unsubscribe(channel_id)
            if channel is None:
                return
