"""Bar charts, dropdown options and record counts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from survey_explorer.errors import QueryExecutionError
from survey_explorer.services.crosstab import Executor, GenerationCounter
from survey_explorer.services.query_builder import (
    Predicate,
    QueryBuilder,
    QueryRequest,
    ResultRow,
    rows_from_frame,
)
from survey_explorer.utils.filter_state import FilterSnapshot, truncate_text

logger = logging.getLogger("survey_explorer.charts")

ChartStatus = Literal["ok", "empty", "error"]
LABEL_MAX_CHARS = 28


@dataclass(frozen=True)
class ChartBar:
    label: str
    count: int
    width_pct: float
    color: str
    active: bool = False

    @property
    def display_label(self) -> str:
        return truncate_text(self.label, LABEL_MAX_CHARS)


@dataclass(frozen=True)
class ChartData:
    dimension: str
    label: str
    status: ChartStatus
    bars: Tuple[ChartBar, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "dimension": self.dimension,
            "label": self.label,
            "status": self.status,
            "error": self.error,
            "bars": [
                {
                    "label": b.label,
                    "display_label": b.display_label,
                    "count": b.count,
                    "width_pct": b.width_pct,
                    "color": b.color,
                    "active": b.active,
                }
                for b in self.bars
            ],
        }


@dataclass(frozen=True)
class ChartBatch:
    generation: int
    charts: Tuple[ChartData, ...] = field(default_factory=tuple)


class ChartService:
    """Per-dimension top-N counts under the current filters.

    A failing chart reports its own error; the rest of the batch still
    renders.
    """

    def __init__(
        self,
        builder: QueryBuilder,
        executor: Executor,
        charts: Mapping[str, int],
        colors: Sequence[str],
        generations: Optional[GenerationCounter] = None,
    ):
        self.builder = builder
        self.executor = executor
        self.charts = {builder.registry.require(k).id: int(v) for k, v in charts.items()}
        self.colors = list(colors) or ["#58a6ff"]
        self.generations = generations or GenerationCounter()

    async def top_values(self, request: QueryRequest) -> List[ResultRow]:
        sql, params = self.builder.aggregate_sql(request)
        return rows_from_frame(await self.executor.execute(sql, params))

    async def bar_chart(
        self, dimension_id: str, limit: int, snapshot: FilterSnapshot
    ) -> ChartData:
        dim = self.builder.registry.require(dimension_id)
        request = QueryRequest(self.builder.build(snapshot), dim, limit)
        try:
            rows = await self.top_values(request)
        except QueryExecutionError as e:
            logger.error("Error rendering chart %s: %s", dim.id, e.message)
            return ChartData(dim.id, dim.label, "error", error=e.message)

        if not rows:
            return ChartData(dim.id, dim.label, "empty")

        peak = max(r.count for r in rows)
        active_value = snapshot.get(dim.id)
        bars = tuple(
            ChartBar(
                label=r.label,
                count=r.count,
                width_pct=(r.count / peak * 100) if peak else 0.0,
                color=self.colors[i % len(self.colors)],
                active=r.label == active_value,
            )
            for i, r in enumerate(rows)
        )
        return ChartData(dim.id, dim.label, "ok", bars=bars)

    async def all_charts(self, snapshot: FilterSnapshot) -> Optional[ChartBatch]:
        """Every configured chart, or ``None`` if superseded while running."""
        generation = self.generations.next()
        charts = await asyncio.gather(
            *(self.bar_chart(dim, limit, snapshot) for dim, limit in self.charts.items())
        )
        if not self.generations.is_current(generation):
            logger.debug("Discarding stale chart generation %d", generation)
            return None
        return ChartBatch(generation=generation, charts=tuple(charts))

    async def options(self, dimension_ids: Sequence[str]) -> Dict[str, List[ResultRow]]:
        """Dropdown options: every non-null value with its unfiltered count."""
        dims = self.builder.registry.subset(dimension_ids)
        results = await asyncio.gather(
            *(self.top_values(QueryRequest(Predicate(), d)) for d in dims)
        )
        return {d.id: rows for d, rows in zip(dims, results)}

    async def counts(self, snapshot: FilterSnapshot) -> Tuple[int, int]:
        """(total, filtered) record counts."""
        total_sql, total_params = self.builder.count_sql(Predicate())
        sql, params = self.builder.count_sql(self.builder.build(snapshot))
        total_df, filtered_df = await asyncio.gather(
            self.executor.execute(total_sql, total_params),
            self.executor.execute(sql, params),
        )
        return int(total_df.iloc[0]["n"]), int(filtered_df.iloc[0]["n"])


__all__ = ["ChartBar", "ChartBatch", "ChartData", "ChartService", "LABEL_MAX_CHARS"]
