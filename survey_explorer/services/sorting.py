"""Row ordering for an assembled matrix. Never re-queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from survey_explorer.services.matrix import Matrix, Metric

ROW_TOTAL = "__row_total__"


@dataclass(frozen=True)
class SortState:
    key: str = ROW_TOTAL
    descending: bool = True

    def click(self, key: Optional[str]) -> "SortState":
        """Same key toggles direction; a new key starts descending."""
        key = key or ROW_TOTAL
        if key == self.key:
            return SortState(key=key, descending=not self.descending)
        return SortState(key=key, descending=True)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "by_row_total": self.key == ROW_TOTAL,
            "direction": "desc" if self.descending else "asc",
        }


def sort_value(matrix: Matrix, row: str, key: str, metric: Optional[Metric] = None) -> float:
    if key == ROW_TOTAL:
        return float(matrix.row_totals.get(row, 0))
    if key not in matrix.col_totals:
        return 0.0
    return matrix.value(row, key, metric)


def sort_rows(matrix: Matrix, state: SortState, metric: Optional[Metric] = None) -> List[str]:
    """Order ``matrix.row_values`` by the value at ``state.key``.

    The sort always starts from the marginal order and is stable in both
    directions, so equal values keep their marginal order. Flipping the
    direction therefore reverses only rows whose values differ; tied rows
    are never swapped.
    """
    metric = metric or matrix.metric
    sign = -1.0 if state.descending else 1.0
    return sorted(
        matrix.row_values,
        key=lambda row: sign * sort_value(matrix, row, state.key, metric),
    )


__all__ = ["ROW_TOTAL", "SortState", "sort_rows", "sort_value"]
