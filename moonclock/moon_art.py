from __future__ import annotations

from typing import List, Tuple


# Tramos de fase en orden del ciclo, empezando por New. Cada entrada tiene
# el nombre mostrado, el icono Awtrix y un pequeño dibujo ASCII de la parte
# iluminada (vista desde el hemisferio norte: limbo iluminado a la derecha
# en creciente).


PHASE_NAMES: Tuple[str, ...] = (
    "New",
    "Waxing Crescent",
    "First Quarter",
    "Waxing Gibbous",
    "Full",
    "Waning Gibbous",
    "Last Quarter",
    "Waning Crescent",
)


PHASE_ICONS: Tuple[str, ...] = (
    "nwmoon",
    "wancrebmoon",
    "fqmoon",
    "wgmoon",
    "FullMoon",
    "wangmoon",
    "lqmoon",
    "wcmoon",
)


PHASE_ART: Tuple[Tuple[str, ...], ...] = (
    # New
    (
        "       _..._     ",
        "     .'     `.   ",
        "    :         :  ",
        "    :         :  ",
        "    `.       .'  ",
        "      `-...-'    ",
    ),
    # Waxing Crescent
    (
        "       _..._     ",
        "     .'   `::.   ",
        "    :       :::  ",
        "    :       :::  ",
        "    `.     .::'  ",
        "      `-..:''    ",
    ),
    # First Quarter
    (
        "       _..._     ",
        "     .'  ::::.   ",
        "    :    ::::::  ",
        "    :    ::::::  ",
        "    `.   :::::'  ",
        "      `-.::''    ",
    ),
    # Waxing Gibbous
    (
        "       _..._     ",
        "     .' .::::.   ",
        "    :  ::::::::  ",
        "    :  ::::::::  ",
        "    `. '::::::'  ",
        "      `-.::''    ",
    ),
    # Full
    (
        "       _..._     ",
        "     .:::::::.   ",
        "    :::::::::::  ",
        "    :::::::::::  ",
        "    `:::::::::'  ",
        "      `':::''    ",
    ),
    # Waning Gibbous
    (
        "       _..._     ",
        "     .::::. `.   ",
        "    :::::::.  :  ",
        "    ::::::::  :  ",
        "    `::::::' .'  ",
        "      `'::'-'    ",
    ),
    # Last Quarter
    (
        "       _..._     ",
        "     .::::  `.   ",
        "    ::::::    :  ",
        "    ::::::    :  ",
        "    `:::::   .'  ",
        "      `'::.-'    ",
    ),
    # Waning Crescent
    (
        "       _..._     ",
        "     .::'   `.   ",
        "    :::       :  ",
        "    :::       :  ",
        "    `::.     .'  ",
        "      `':..-'    ",
    ),
)


def art_lines(index: int) -> List[str]:
    """Copia del dibujo para un tramo de fase (0..7)."""
    return list(PHASE_ART[index % len(PHASE_ART)])
