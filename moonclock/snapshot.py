from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, TypeVar

from pydantic import BaseModel

import celestial
from config import DEFAULT_LATITUDE
from log import get_logger, log_warn

logger = get_logger("moonclock.snapshot")

T = TypeVar("T")

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class Snapshot:
    """Todas las magnitudes mostradas para un instante UTC. None = no calculable."""

    computed_at: datetime

    moon_phase_name: str
    moon_phase_icon: str
    moon_ascii_art: Tuple[str, ...]
    moon_illumination_percent: Optional[float]
    moon_age_days: Optional[float]
    days_until_full_moon: Optional[float]
    moon_distance_km: Optional[float]

    sun_distance_au: Optional[float]
    mars_distance_au: Optional[float]
    jupiter_distance_au: Optional[float]
    saturn_distance_au: Optional[float]

    voyager1_distance_au: Optional[float]
    voyager2_distance_au: Optional[float]
    new_horizons_distance_au: Optional[float]

    earth_speed_km_s: Optional[float]
    earth_speed_km_h: Optional[float]
    daylight_hours: Optional[float]

    light_time_sun_to_earth: Optional[str]
    light_time_earth_to_mars: Optional[str]
    light_time_earth_to_jupiter: Optional[str]
    light_time_earth_to_saturn: Optional[str]
    light_time_earth_to_voyager1: Optional[str]
    light_time_earth_to_voyager2: Optional[str]
    light_time_earth_to_new_horizons: Optional[str]

    days_until_summer_solstice: Optional[int]
    days_until_winter_solstice: Optional[int]
    days_until_vernal_equinox: Optional[int]
    days_until_autumnal_equinox: Optional[int]
    days_until_perihelion: Optional[int]
    days_until_aphelion: Optional[int]

    @property
    def last_updated(self) -> str:
        return self.computed_at.strftime(TIMESTAMP_FORMAT)


class SnapshotDocument(BaseModel):
    moonPhaseName: str
    moonPhaseIcon: str
    moonAsciiArt: List[str]
    moonIlluminationPercent: Optional[float] = None
    moonAgeDays: Optional[float] = None
    daysUntilFullMoon: Optional[float] = None
    moonDistanceKm: Optional[float] = None
    sunDistanceAu: Optional[float] = None
    marsDistanceAu: Optional[float] = None
    jupiterDistanceAu: Optional[float] = None
    saturnDistanceAu: Optional[float] = None
    voyager1DistanceAu: Optional[float] = None
    voyager2DistanceAu: Optional[float] = None
    newHorizonsDistanceAu: Optional[float] = None
    earthSpeedKmPerSec: Optional[float] = None
    earthSpeedKmPerHour: Optional[float] = None
    daylightHours: Optional[float] = None
    lightTimeSunToEarth: Optional[str] = None
    lightTimeEarthToMars: Optional[str] = None
    lightTimeEarthToJupiter: Optional[str] = None
    lightTimeEarthToSaturn: Optional[str] = None
    lightTimeEarthToVoyager1: Optional[str] = None
    lightTimeEarthToVoyager2: Optional[str] = None
    lightTimeEarthToNewHorizons: Optional[str] = None
    daysUntilSummerSolstice: Optional[int] = None
    daysUntilWinterSolstice: Optional[int] = None
    daysUntilVernalEquinox: Optional[int] = None
    daysUntilAutumnalEquinox: Optional[int] = None
    daysUntilPerihelion: Optional[int] = None
    daysUntilAphelion: Optional[int] = None
    lastUpdated: str


def _guarded(field: str, func: Callable[..., T], *args) -> Optional[T]:
    """Calcula un campo; errores de dominio numérico y resultados no finitos dan None."""
    try:
        value = func(*args)
    except (ValueError, ArithmeticError) as exc:
        log_warn(logger, "field not computable", field=field, error=str(exc))
        return None
    if isinstance(value, float) and not math.isfinite(value):
        log_warn(logger, "field not finite", field=field, value=str(value))
        return None
    return value


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)


def _light_time(field: str, distance_au: Optional[float]) -> Optional[str]:
    if distance_au is None:
        return None
    return _guarded(field, celestial.format_light_time, distance_au)


def build_snapshot(t: datetime, latitude_deg: float = DEFAULT_LATITUDE) -> Snapshot:
    """Calcula todos los campos para el instante t (datetime sin zona se toma como UTC)."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    else:
        t = t.astimezone(timezone.utc)

    age = celestial.moon_age_days(t)

    sun = _guarded("sunDistanceAu", celestial.sun_distance_au, t)
    mars = _guarded("marsDistanceAu", celestial.planet_distance_au, t, celestial.MARS)
    jupiter = _guarded("jupiterDistanceAu", celestial.planet_distance_au, t, celestial.JUPITER)
    saturn = _guarded("saturnDistanceAu", celestial.planet_distance_au, t, celestial.SATURN)

    voyager1 = _guarded("voyager1DistanceAu", celestial.probe_distance_au, t, celestial.VOYAGER_1)
    voyager2 = _guarded("voyager2DistanceAu", celestial.probe_distance_au, t, celestial.VOYAGER_2)
    new_horizons = _guarded("newHorizonsDistanceAu", celestial.probe_distance_au, t, celestial.NEW_HORIZONS)

    speed_km_s = _guarded("earthSpeedKmPerSec", celestial.earth_speed_km_s, t)

    return Snapshot(
        computed_at=t,
        moon_phase_name=celestial.moon_phase_name(age),
        moon_phase_icon=celestial.moon_phase_icon(age),
        moon_ascii_art=tuple(celestial.moon_ascii_art(age)),
        moon_illumination_percent=_guarded("moonIlluminationPercent", celestial.moon_illumination_percent, age),
        moon_age_days=round(age, 2),
        days_until_full_moon=_round(_guarded("daysUntilFullMoon", celestial.days_until_full_moon, age), 2),
        moon_distance_km=_guarded("moonDistanceKm", celestial.moon_distance_km, age),
        sun_distance_au=sun,
        mars_distance_au=mars,
        jupiter_distance_au=jupiter,
        saturn_distance_au=saturn,
        voyager1_distance_au=voyager1,
        voyager2_distance_au=voyager2,
        new_horizons_distance_au=new_horizons,
        earth_speed_km_s=speed_km_s,
        earth_speed_km_h=None if speed_km_s is None else speed_km_s * 3600.0,
        daylight_hours=_guarded("daylightHours", celestial.daylight_hours, t, latitude_deg),
        light_time_sun_to_earth=_light_time("lightTimeSunToEarth", sun),
        light_time_earth_to_mars=_light_time("lightTimeEarthToMars", mars),
        light_time_earth_to_jupiter=_light_time("lightTimeEarthToJupiter", jupiter),
        light_time_earth_to_saturn=_light_time("lightTimeEarthToSaturn", saturn),
        light_time_earth_to_voyager1=_light_time("lightTimeEarthToVoyager1", voyager1),
        light_time_earth_to_voyager2=_light_time("lightTimeEarthToVoyager2", voyager2),
        light_time_earth_to_new_horizons=_light_time("lightTimeEarthToNewHorizons", new_horizons),
        days_until_summer_solstice=_guarded("daysUntilSummerSolstice", celestial.days_until_event, t, celestial.SUMMER_SOLSTICE),
        days_until_winter_solstice=_guarded("daysUntilWinterSolstice", celestial.days_until_event, t, celestial.WINTER_SOLSTICE),
        days_until_vernal_equinox=_guarded("daysUntilVernalEquinox", celestial.days_until_event, t, celestial.VERNAL_EQUINOX),
        days_until_autumnal_equinox=_guarded("daysUntilAutumnalEquinox", celestial.days_until_event, t, celestial.AUTUMNAL_EQUINOX),
        days_until_perihelion=_guarded("daysUntilPerihelion", celestial.days_until_event, t, celestial.PERIHELION),
        days_until_aphelion=_guarded("daysUntilAphelion", celestial.days_until_event, t, celestial.APHELION),
    )


def to_document(snapshot: Snapshot) -> SnapshotDocument:
    return SnapshotDocument(
        moonPhaseName=snapshot.moon_phase_name,
        moonPhaseIcon=snapshot.moon_phase_icon,
        moonAsciiArt=list(snapshot.moon_ascii_art),
        moonIlluminationPercent=snapshot.moon_illumination_percent,
        moonAgeDays=snapshot.moon_age_days,
        daysUntilFullMoon=snapshot.days_until_full_moon,
        moonDistanceKm=snapshot.moon_distance_km,
        sunDistanceAu=snapshot.sun_distance_au,
        marsDistanceAu=snapshot.mars_distance_au,
        jupiterDistanceAu=snapshot.jupiter_distance_au,
        saturnDistanceAu=snapshot.saturn_distance_au,
        voyager1DistanceAu=snapshot.voyager1_distance_au,
        voyager2DistanceAu=snapshot.voyager2_distance_au,
        newHorizonsDistanceAu=snapshot.new_horizons_distance_au,
        earthSpeedKmPerSec=snapshot.earth_speed_km_s,
        earthSpeedKmPerHour=snapshot.earth_speed_km_h,
        daylightHours=snapshot.daylight_hours,
        lightTimeSunToEarth=snapshot.light_time_sun_to_earth,
        lightTimeEarthToMars=snapshot.light_time_earth_to_mars,
        lightTimeEarthToJupiter=snapshot.light_time_earth_to_jupiter,
        lightTimeEarthToSaturn=snapshot.light_time_earth_to_saturn,
        lightTimeEarthToVoyager1=snapshot.light_time_earth_to_voyager1,
        lightTimeEarthToVoyager2=snapshot.light_time_earth_to_voyager2,
        lightTimeEarthToNewHorizons=snapshot.light_time_earth_to_new_horizons,
        daysUntilSummerSolstice=snapshot.days_until_summer_solstice,
        daysUntilWinterSolstice=snapshot.days_until_winter_solstice,
        daysUntilVernalEquinox=snapshot.days_until_vernal_equinox,
        daysUntilAutumnalEquinox=snapshot.days_until_autumnal_equinox,
        daysUntilPerihelion=snapshot.days_until_perihelion,
        daysUntilAphelion=snapshot.days_until_aphelion,
        lastUpdated=snapshot.last_updated,
    )


def serialize(snapshot: Snapshot) -> str:
    """Texto JSON del documento; los valores ausentes se escriben como null."""
    return to_document(snapshot).model_dump_json()
