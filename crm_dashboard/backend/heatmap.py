"""Noise filtering and intensity bucketing for day x hour heat grids.

A cell whose value is at or below the noise threshold reads as empty; it is
not merely dimmed. Intensity levels are relative to the largest value that
survives the filter.
"""

from typing import Iterable

from .models import HeatCell

# Upper bounds (exclusive) of levels 1-4 as a fraction of the scale max.
_LEVEL_BOUNDS = (0.2, 0.4, 0.6, 0.8)


def effective_value(value: int, threshold: int) -> int:
    return value if value > threshold else 0


def apply_noise_filter(cells: Iterable[HeatCell], threshold: int) -> tuple[HeatCell, ...]:
    return tuple(
        HeatCell(day=c.day, hour=c.hour, value=effective_value(c.value, threshold))
        for c in cells
    )


def scale_max(cells: Iterable[HeatCell], threshold: int) -> int:
    return max((effective_value(c.value, threshold) for c in cells), default=0) or 1


def intensity_level(value: int, max_value: int, threshold: int) -> int:
    """0 for empty cells, else 1-5 by share of *max_value*."""
    effective = effective_value(value, threshold)
    if effective == 0:
        return 0
    ratio = effective / max_value
    for level, bound in enumerate(_LEVEL_BOUNDS, start=1):
        if ratio < bound:
            return level
    return 5


def heat_payload(cells: Iterable[HeatCell], threshold: int) -> list[dict]:
    """Cells with raw value, filtered value and intensity level, for the API."""
    cells = tuple(cells)
    top = scale_max(cells, threshold)
    return [
        {
            "day": c.day,
            "hour": c.hour,
            "value": c.value,
            "effective": effective_value(c.value, threshold),
            "level": intensity_level(c.value, top, threshold),
        }
        for c in cells
    ]
