from __future__ import annotations

import pytest

from survey_explorer.services.heatmap import (
    LEGIBILITY_THRESHOLD,
    heat_style,
    intensity,
    matrix_intensities,
)
from survey_explorer.services.matrix import CrosstabCell, Matrix
from survey_explorer.services.query_builder import ResultRow


def test_intensity_is_normalized() -> None:
    assert intensity(5, 10) == 0.5
    assert intensity(10, 10) == 1.0
    assert intensity(0, 10) == 0.0
    assert intensity(3, 0) == 0.0
    assert intensity(12, 10) == 1.0


def test_foreground_flips_past_threshold() -> None:
    low = heat_style(LEGIBILITY_THRESHOLD)
    high = heat_style(0.51)
    assert low.foreground != high.foreground
    assert high.background == "rgba(88, 166, 255, 0.51)"
    assert heat_style(-1).intensity == 0.0
    assert heat_style(0.2, (1, 2, 3)).background == "rgba(1, 2, 3, 0.2)"


def test_max_is_recomputed_per_metric() -> None:
    matrix = Matrix.assemble(
        "r",
        "c",
        [CrosstabCell("A", "x", 8), CrosstabCell("B", "x", 1), CrosstabCell("B", "y", 1)],
        [ResultRow("A", 8), ResultRow("B", 2)],
        [ResultRow("x", 9), ResultRow("y", 1)],
    )
    counts = matrix_intensities(matrix, "count")
    assert counts[("A", "x")] == 1.0
    assert counts[("B", "y")] == pytest.approx(1 / 8)

    shares = matrix_intensities(matrix, "row_pct")
    assert shares[("A", "x")] == 1.0
    assert shares[("B", "y")] == pytest.approx(0.5)
    assert shares[("A", "y")] == 0.0
