"""Dense crosstab matrix assembled from sparse cells and marginal totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from survey_explorer.errors import InvalidMetricError
from survey_explorer.services.query_builder import ResultRow

logger = logging.getLogger("survey_explorer.crosstab")

Metric = Literal["count", "row_pct", "col_pct"]
METRICS: Tuple[str, ...] = ("count", "row_pct", "col_pct")


def parse_metric(value: Optional[str], default: str = "count") -> Metric:
    metric = (value or default).strip().lower()
    if metric not in METRICS:
        raise InvalidMetricError(f"Unknown metric {value!r}; expected one of {', '.join(METRICS)}")
    return metric  # type: ignore[return-value]


@dataclass(frozen=True)
class CrosstabCell:
    row_value: str
    col_value: str
    count: int


@dataclass(frozen=True)
class Matrix:
    """Row/column values in marginal order with raw counts.

    Cells absent from ``cells`` count as zero. Percentages are derived on
    read, never stored.
    """

    row_dim: str
    col_dim: str
    row_values: Tuple[str, ...] = ()
    col_values: Tuple[str, ...] = ()
    cells: Dict[Tuple[str, str], int] = field(default_factory=dict)
    row_totals: Dict[str, int] = field(default_factory=dict)
    col_totals: Dict[str, int] = field(default_factory=dict)
    grand_total: int = 0
    metric: Metric = "count"

    @classmethod
    def assemble(
        cls,
        row_dim: str,
        col_dim: str,
        cells: Iterable[CrosstabCell],
        row_totals: Sequence[ResultRow],
        col_totals: Sequence[ResultRow],
        metric: Metric = "count",
    ) -> "Matrix":
        rows = tuple(r.label for r in row_totals)
        cols = tuple(c.label for c in col_totals)
        row_set, col_set = set(rows), set(cols)

        dense: Dict[Tuple[str, str], int] = {}
        dropped = 0
        for cell in cells:
            if cell.row_value not in row_set or cell.col_value not in col_set:
                dropped += 1
                continue
            key = (cell.row_value, cell.col_value)
            dense[key] = dense.get(key, 0) + int(cell.count)
        if dropped:
            logger.debug("Dropped %d cell(s) outside the marginal totals", dropped)

        row_map = {r.label: int(r.count) for r in row_totals}
        return cls(
            row_dim=row_dim,
            col_dim=col_dim,
            row_values=rows,
            col_values=cols,
            cells=dense,
            row_totals=row_map,
            col_totals={c.label: int(c.count) for c in col_totals},
            grand_total=sum(row_map.values()),
            metric=metric,
        )

    @property
    def is_empty(self) -> bool:
        return not self.row_values or not self.col_values

    def with_metric(self, metric: Metric) -> "Matrix":
        return replace(self, metric=metric)

    def count(self, row: str, col: str) -> int:
        return self.cells.get((row, col), 0)

    def value(self, row: str, col: str, metric: Optional[Metric] = None) -> float:
        """Metric value for one cell: count, or a share of the row/col total."""
        metric = metric or self.metric
        count = self.count(row, col)
        if metric == "row_pct":
            total = self.row_totals.get(row, 0)
            return count / total * 100 if total else 0.0
        if metric == "col_pct":
            total = self.col_totals.get(col, 0)
            return count / total * 100 if total else 0.0
        return float(count)

    def row(self, row: str, metric: Optional[Metric] = None) -> List[float]:
        return [self.value(row, col, metric) for col in self.col_values]

    def max_value(self, metric: Optional[Metric] = None) -> float:
        values = [self.value(r, c, metric) for (r, c) in self.cells]
        return max(values) if values else 0.0


__all__ = ["CrosstabCell", "Matrix", "Metric", "METRICS", "parse_metric"]
