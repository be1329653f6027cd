"""Heatmap shading for crosstab cells."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from survey_explorer.services.matrix import Matrix, Metric

LEGIBILITY_THRESHOLD = 0.5
LIGHT_TEXT = "#c9d1d9"
DARK_TEXT = "#0d1117"


def intensity(value: float, max_value: float) -> float:
    if max_value <= 0 or value <= 0:
        return 0.0
    return min(1.0, value / max_value)


@dataclass(frozen=True)
class HeatStyle:
    intensity: float
    background: str
    foreground: str


def heat_style(level: float, rgb: Tuple[int, int, int] = (88, 166, 255)) -> HeatStyle:
    """Alpha-blended background; text flips to dark past the threshold."""
    level = max(0.0, min(1.0, level))
    r, g, b = rgb
    return HeatStyle(
        intensity=level,
        background=f"rgba({r}, {g}, {b}, {round(level, 3)})",
        foreground=DARK_TEXT if level > LEGIBILITY_THRESHOLD else LIGHT_TEXT,
    )


def matrix_intensities(
    matrix: Matrix, metric: Optional[Metric] = None
) -> Dict[Tuple[str, str], float]:
    # the max depends on the metric: counts and percentages differ in scale
    metric = metric or matrix.metric
    peak = matrix.max_value(metric)
    return {
        (row, col): intensity(matrix.value(row, col, metric), peak)
        for row in matrix.row_values
        for col in matrix.col_values
    }


__all__ = ["HeatStyle", "LEGIBILITY_THRESHOLD", "heat_style", "intensity", "matrix_intensities"]
