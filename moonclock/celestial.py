from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

# Skyfield solo para la escala de tiempo (TT); las posiciones son aproximaciones cerradas
from skyfield.api import load

from moon_art import PHASE_ICONS, PHASE_NAMES, art_lines


KM_PER_AU = 149_597_870.7
SPEED_OF_LIGHT_KM_S = 299_792.458
SECONDS_PER_DAY = 86_400.0
J2000_JD = 2451545.0

# Luna
SYNODIC_MONTH_DAYS = 29.530588
NEW_MOON_EPOCH = datetime(2000, 1, 6, 18, 14, tzinfo=timezone.utc)
PHASE_BUCKETS = 8
MOON_MEAN_DISTANCE_KM = 384_400.0
MOON_DISTANCE_AMPLITUDE_KM = 21_000.0
MOON_PERIGEE_KM = 356_500.0
MOON_APOGEE_KM = 406_700.0
FULL_MOON_TOLERANCE_DAYS = 1e-6

# Órbita terrestre (elementos medios en J2000)
EARTH_MEAN_ANOMALY_J2000_DEG = 357.529
EARTH_MEAN_MOTION_DEG_PER_DAY = 0.98560028
EARTH_PERIHELION_LONGITUDE_DEG = 102.93735
EARTH_ORBIT_MEAN_AU = 1.00014
EARTH_ORBIT_ECCENTRICITY = 0.01671
EARTH_ORBIT_CORRECTION = 0.00014
GM_SUN_KM3_S2 = 1.32712440018e11

AXIAL_TILT_DEG = 23.44
TROPICAL_YEAR_DAYS = 365.24219


@dataclass(frozen=True)
class Planet:
    name: str
    semi_major_axis_au: float
    eccentricity: float
    mean_anomaly_j2000_deg: float
    mean_motion_deg_per_day: float
    perihelion_longitude_deg: float


MARS = Planet("Mars", 1.523679, 0.0934, 19.3870, 0.5240207766, 336.04084)
JUPITER = Planet("Jupiter", 5.2026, 0.0489, 20.0202, 0.0831294, 14.75385)
SATURN = Planet("Saturn", 9.5549, 0.0557, 317.0207, 0.0334442, 92.43194)


@dataclass(frozen=True)
class Probe:
    name: str
    reference_au: float  # distancia a la Tierra en reference_epoch
    speed_km_s: float    # velocidad radial (solo alejamiento)
    reference_epoch: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)

    @property
    def au_per_day(self) -> float:
        return self.speed_km_s * SECONDS_PER_DAY / KM_PER_AU


VOYAGER_1 = Probe("Voyager 1", 159.0, 17.0)
VOYAGER_2 = Probe("Voyager 2", 133.0, 15.4)
NEW_HORIZONS = Probe("New Horizons", 58.0, 13.8)


@dataclass(frozen=True)
class YearlyEvent:
    """Evento anual en fecha UTC fija, o que deriva por años trópicos enteros.

    Los eventos con deriva parten de su instante del año 2000 y avanzan
    ``TROPICAL_YEAR_DAYS`` por año; la deriva del calendario y los bisiestos
    salen de la aritmética.
    """

    name: str
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    drifting: bool = False

    def occurrence(self, year: int) -> datetime:
        if not self.drifting:
            return datetime(year, self.month, self.day, self.hour, self.minute, tzinfo=timezone.utc)
        anchor = datetime(2000, self.month, self.day, self.hour, self.minute, tzinfo=timezone.utc)
        return anchor + timedelta(days=(year - 2000) * TROPICAL_YEAR_DAYS)


VERNAL_EQUINOX = YearlyEvent("vernal equinox", 3, 20, 7, 35, drifting=True)
SUMMER_SOLSTICE = YearlyEvent("june solstice", 6, 21, 1, 48, drifting=True)
AUTUMNAL_EQUINOX = YearlyEvent("autumnal equinox", 9, 22, 17, 28, drifting=True)
WINTER_SOLSTICE = YearlyEvent("december solstice", 12, 21, 13, 37, drifting=True)
PERIHELION = YearlyEvent("perihelion", 1, 3)
APHELION = YearlyEvent("aphelion", 7, 4)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _normalize_degrees_360(deg: float) -> float:
    return deg % 360.0


@lru_cache(maxsize=1)
def _timescale():
    # Datos internos de skyfield: no descarga nada
    return load.timescale(builtin=True)


def days_since_j2000(t: datetime) -> float:
    """Días transcurridos desde J2000.0, en escala TT."""
    return float(_timescale().from_datetime(_as_utc(t)).tt) - J2000_JD


# ------------------------------- Luna -------------------------------

def moon_age_days(t: datetime) -> float:
    """Días desde la última luna nueva, en [0, SYNODIC_MONTH_DAYS)."""
    elapsed = (_as_utc(t) - NEW_MOON_EPOCH).total_seconds() / SECONDS_PER_DAY
    age = elapsed % SYNODIC_MONTH_DAYS
    # -1e-17 % P == P en coma flotante
    if age >= SYNODIC_MONTH_DAYS:
        age = 0.0
    return age


def moon_phase_index(age_days: float) -> int:
    """Tramo 0..7 de una edad lunar; los tramos se centran en las fases principales."""
    fraction = age_days / SYNODIC_MONTH_DAYS
    return int(math.floor(fraction * PHASE_BUCKETS + 0.5)) % PHASE_BUCKETS


def moon_phase_name(age_days: float) -> str:
    return PHASE_NAMES[moon_phase_index(age_days)]


def moon_phase_icon(age_days: float) -> str:
    return PHASE_ICONS[moon_phase_index(age_days)]


def moon_ascii_art(age_days: float) -> List[str]:
    return art_lines(moon_phase_index(age_days))


def moon_illumination_percent(age_days: float) -> float:
    angle = 2.0 * math.pi * age_days / SYNODIC_MONTH_DAYS
    return round(50.0 * (1.0 - math.cos(angle)), 1)


def days_until_full_moon(age_days: float) -> float:
    """Días hasta la próxima luna llena; una luna llena justo ahora cuenta como pasada."""
    remaining = (SYNODIC_MONTH_DAYS / 2.0 - age_days) % SYNODIC_MONTH_DAYS
    if remaining < FULL_MOON_TOLERANCE_DAYS:
        remaining += SYNODIC_MONTH_DAYS
    return remaining


def moon_distance_km(age_days: float) -> float:
    """Distancia lunar que oscila una vez por mes sinódico entre
    MEAN - AMPLITUDE (luna nueva) y MEAN + AMPLITUDE (luna llena).
    """
    angle = 2.0 * math.pi * age_days / SYNODIC_MONTH_DAYS
    return MOON_MEAN_DISTANCE_KM - MOON_DISTANCE_AMPLITUDE_KM * math.cos(angle)


# ------------------------- Cuerpos del Sistema Solar -------------------------

def _earth_mean_anomaly_deg(d: float) -> float:
    return _normalize_degrees_360(EARTH_MEAN_ANOMALY_J2000_DEG + EARTH_MEAN_MOTION_DEG_PER_DAY * d)


def _earth_radius_au(d: float) -> float:
    m = math.radians(_earth_mean_anomaly_deg(d))
    return EARTH_ORBIT_MEAN_AU - EARTH_ORBIT_ECCENTRICITY * math.cos(m) - EARTH_ORBIT_CORRECTION * math.cos(2.0 * m)


def sun_distance_au(t: datetime) -> float:
    """Distancia Tierra-Sol (AU), con error de unas pocas 1e-4 AU."""
    return _earth_radius_au(days_since_j2000(t))


def planet_distance_au(t: datetime, planet: Planet) -> float:
    """Distancia Tierra-planeta (AU) a partir de dos radios keplerianos coplanares.

    Radios de primer orden r = a(1 - e cos M); el ángulo entre ambos es la
    diferencia de longitudes medias. Precisión suficiente para mostrar.
    """
    d = days_since_j2000(t)

    r_earth = _earth_radius_au(d)
    long_earth = math.radians(_earth_mean_anomaly_deg(d) + EARTH_PERIHELION_LONGITUDE_DEG)

    m_planet = _normalize_degrees_360(planet.mean_anomaly_j2000_deg + planet.mean_motion_deg_per_day * d)
    r_planet = planet.semi_major_axis_au * (1.0 - planet.eccentricity * math.cos(math.radians(m_planet)))
    long_planet = math.radians(m_planet + planet.perihelion_longitude_deg)

    # Ley de cosenos en el plano de la eclíptica
    delta = long_planet - long_earth
    return math.sqrt(r_earth * r_earth + r_planet * r_planet - 2.0 * r_earth * r_planet * math.cos(delta))


def probe_distance_au(t: datetime, probe: Probe) -> float:
    """Extrapolación lineal desde la distancia de referencia de la sonda."""
    days = (_as_utc(t) - probe.reference_epoch).total_seconds() / SECONDS_PER_DAY
    return max(0.0, probe.reference_au + probe.au_per_day * days)


# ------------------------------ Tierra ------------------------------

def earth_speed_km_s(t: datetime) -> float:
    """Velocidad orbital por vis-viva, v = sqrt(GM (2/r - 1/a)), a = 1 AU."""
    r_km = sun_distance_au(t) * KM_PER_AU
    return math.sqrt(GM_SUN_KM3_S2 * (2.0 / r_km - 1.0 / KM_PER_AU))


def earth_speed_km_h(t: datetime) -> float:
    return earth_speed_km_s(t) * 3600.0


def _day_length_from_declination(lat_rad: float, decl_rad: float) -> float:
    x = -math.tan(lat_rad) * math.tan(decl_rad)
    if x >= 1.0:
        return 0.0   # noche polar
    if x <= -1.0:
        return 24.0  # día polar
    return (24.0 / math.pi) * math.acos(x)


def daylight_hours(t: datetime, latitude_deg: float) -> float:
    """Duración del día (horas) en una latitud, según la declinación solar del día UTC."""
    if latitude_deg < -90.0 or latitude_deg > 90.0:
        raise ValueError(f"latitude out of range: {latitude_deg}")
    n = _as_utc(t).timetuple().tm_yday
    decl = math.radians(AXIAL_TILT_DEG) * math.sin(2.0 * math.pi * (284 + n) / 365.0)
    return _day_length_from_declination(math.radians(latitude_deg), decl)


def daylight_range_hours(latitude_deg: float) -> Tuple[float, float]:
    """(mín, máx) de la duración del día en el año, con las declinaciones de los solsticios."""
    if abs(latitude_deg) >= 66.5:
        return 0.0, 24.0
    lat = math.radians(latitude_deg)
    tilt = math.radians(AXIAL_TILT_DEG)
    a = _day_length_from_declination(lat, tilt)
    b = _day_length_from_declination(lat, -tilt)
    return min(a, b), max(a, b)


# --------------------------- Tiempo de luz ---------------------------

def light_time_seconds(distance_au: float) -> float:
    if not math.isfinite(distance_au) or distance_au < 0.0:
        raise ValueError(f"invalid distance: {distance_au}")
    return distance_au * KM_PER_AU / SPEED_OF_LIGHT_KM_S


def format_light_time(distance_au: float) -> str:
    """Tiempo de luz como "Ns", "Xm Ys" o "Xh Ym" (truncado, por tanto monótono)."""
    total = int(light_time_seconds(distance_au))
    if total < 60:
        return f"{total}s"
    minutes, seconds = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m {seconds}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


# ----------------------------- Efemérides -----------------------------

def next_occurrence(t: datetime, event: YearlyEvent) -> datetime:
    """Primera ocurrencia estrictamente posterior a t; un evento justo en t ya pasó."""
    now = _as_utc(t)
    for year in (now.year - 1, now.year, now.year + 1):
        candidate = event.occurrence(year)
        if candidate > now:
            return candidate
    return event.occurrence(now.year + 2)


def days_until_event(t: datetime, event: YearlyEvent) -> int:
    """Días enteros hasta la próxima ocurrencia (siempre >= 0)."""
    remaining = next_occurrence(t, event) - _as_utc(t)
    return int(remaining.total_seconds() // SECONDS_PER_DAY)


# ------------------------------ Rangos ------------------------------

def sample_range(
    func: Callable[[datetime], float],
    start: datetime,
    days: int = 365,
) -> Tuple[float, float]:
    """(mín, máx) de func muestreada una vez al día desde start."""
    lo: Optional[float] = None
    hi: Optional[float] = None
    for i in range(max(1, days)):
        value = func(start + timedelta(days=i))
        lo = value if lo is None or value < lo else lo
        hi = value if hi is None or value > hi else hi
    return float(lo), float(hi)
