from __future__ import annotations

import sys
from typing import List

import celestial
from config import get_latitude
from snapshot import Snapshot, build_snapshot
from timeutil import parse_iso_datetime_utc

BAR_WIDTH = 30


def relative_bar(current: float, lo: float, hi: float, width: int = BAR_WIDTH) -> str:
    """Barra ASCII ``Min |---0---| Max`` que marca current dentro de [lo, hi]."""
    width = max(1, width)
    if hi <= lo:
        pos = width // 2
    else:
        frac = min(1.0, max(0.0, (current - lo) / (hi - lo)))
        pos = int(round(frac * (width - 1)))
    return "Min |" + "".join("0" if i == pos else "-" for i in range(width)) + "| Max"


def _range_lines(label: str, current: float, lo: float, hi: float, fmt: str) -> List[str]:
    return [
        f"{label}: {current:{fmt}}",
        relative_bar(current, lo, hi),
        f"{lo:{fmt}}        {current:{fmt}}        {hi:{fmt}}",
    ]


def format_snapshot(snap: Snapshot, latitude_deg: float) -> List[str]:
    t = snap.computed_at
    lines = [f"Snapshot {snap.last_updated}"]
    lines.append(
        f"Moon: {snap.moon_phase_name} ({snap.moon_age_days} days, "
        f"{snap.moon_illumination_percent}% illuminated, full moon in {snap.days_until_full_moon} days)"
    )
    lines.extend(snap.moon_ascii_art)

    bodies = [
        ("Earth-Sun distance (AU)", snap.sun_distance_au, celestial.sun_distance_au),
        ("Earth-Mars distance (AU)", snap.mars_distance_au, lambda d: celestial.planet_distance_au(d, celestial.MARS)),
        ("Earth-Jupiter distance (AU)", snap.jupiter_distance_au, lambda d: celestial.planet_distance_au(d, celestial.JUPITER)),
        ("Earth-Saturn distance (AU)", snap.saturn_distance_au, lambda d: celestial.planet_distance_au(d, celestial.SATURN)),
    ]
    for label, value, func in bodies:
        if value is None:
            lines.append(f"{label}: n/a")
            continue
        lo, hi = celestial.sample_range(func, t, 365)
        lines.extend(_range_lines(label, value, lo, hi, ".6f"))

    if snap.moon_distance_km is not None:
        lines.extend(_range_lines(
            "Moon distance (km)",
            snap.moon_distance_km,
            celestial.MOON_MEAN_DISTANCE_KM - celestial.MOON_DISTANCE_AMPLITUDE_KM,
            celestial.MOON_MEAN_DISTANCE_KM + celestial.MOON_DISTANCE_AMPLITUDE_KM,
            ",.0f",
        ))
    if snap.daylight_hours is not None:
        lo, hi = celestial.daylight_range_hours(latitude_deg)
        lines.extend(_range_lines(f"Daylight (hours) at latitude {latitude_deg}", snap.daylight_hours, lo, hi, ".2f"))

    lines.append(f"Voyager 1: {snap.voyager1_distance_au} AU | Voyager 2: {snap.voyager2_distance_au} AU | New Horizons: {snap.new_horizons_distance_au} AU")
    lines.append(f"Earth orbital speed: {snap.earth_speed_km_s} km/s")
    lines.append("--- Light Travel Times ---")
    lines.append(f"Sun -> Earth: {snap.light_time_sun_to_earth}")
    lines.append(f"Earth -> Mars: {snap.light_time_earth_to_mars}")
    lines.append(f"Earth -> Jupiter: {snap.light_time_earth_to_jupiter}")
    lines.append(f"Earth -> Saturn: {snap.light_time_earth_to_saturn}")
    lines.append(f"Earth -> Voyager 1: {snap.light_time_earth_to_voyager1}")
    lines.append(f"Earth -> Voyager 2: {snap.light_time_earth_to_voyager2}")
    lines.append(f"Earth -> New Horizons: {snap.light_time_earth_to_new_horizons}")
    lines.append(
        f"Days until: June solstice {snap.days_until_summer_solstice}, "
        f"December solstice {snap.days_until_winter_solstice}, "
        f"perihelion {snap.days_until_perihelion}, aphelion {snap.days_until_aphelion}"
    )
    return lines


def main() -> None:
    # Ejemplo: instante actual o fecha ISO pasada como argumento
    latitude = get_latitude()
    t = parse_iso_datetime_utc(sys.argv[1] if len(sys.argv) > 1 else None)
    for line in format_snapshot(build_snapshot(t, latitude_deg=latitude), latitude):
        print(line)


if __name__ == "__main__":
    main()
