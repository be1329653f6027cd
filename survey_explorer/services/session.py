"""Explorer session: filter state, pivot settings and the latest views."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from survey_explorer.services.charts import ChartBatch, ChartService
from survey_explorer.services.crosstab import CrosstabEngine, CrosstabResult, Executor
from survey_explorer.services.datastore import DataStore
from survey_explorer.services.dimensions import DimensionRegistry
from survey_explorer.services.heatmap import heat_style, matrix_intensities
from survey_explorer.services.matrix import Metric, parse_metric
from survey_explorer.services.query_builder import QueryBuilder
from survey_explorer.services.sorting import ROW_TOTAL, SortState, sort_rows
from survey_explorer.utils.filter_state import FilterSnapshot, FilterState

logger = logging.getLogger("survey_explorer")


@dataclass(frozen=True)
class PivotSettings:
    row_dim: str
    col_dim: str
    metric: Metric = "count"


class ExplorerSession:
    """One user's exploration state.

    Filter mutations go through :attr:`filters`; each one supersedes any
    in-flight chart or crosstab batch. Views are recomputed by awaiting
    :meth:`refresh_charts` / :meth:`refresh_crosstab`.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        executor: Executor,
        datastore: Optional[DataStore] = None,
    ):
        self.config = config
        self.datastore = datastore
        # held for the whole of each request; the session is not thread-safe
        self.lock = threading.Lock()
        self.registry = DimensionRegistry(config["DIMENSIONS"])
        self.builder = QueryBuilder(
            self.registry,
            table=config.get("TABLE_NAME", "survey"),
            separator=config.get("LIST_SEPARATOR", ","),
            search_columns=config.get("SEARCH_COLUMNS", ()),
        )
        self.filters = FilterState(self.registry)
        self.crosstab_engine = CrosstabEngine(self.builder, executor)
        self.chart_service = ChartService(
            self.builder,
            executor,
            charts=config.get("CHARTS", {}),
            colors=config.get("CHART_COLORS", ()),
        )
        self.filter_dimensions: List[str] = [
            d.id for d in self.registry.subset(config.get("FILTER_DIMENSIONS", ()))
        ]

        row_dim, col_dim = config.get("DEFAULT_PIVOT", ("role", "region"))
        self.pivot = PivotSettings(
            row_dim=self.registry.require(row_dim).id,
            col_dim=self.registry.require(col_dim).id,
            metric=parse_metric(config.get("DEFAULT_METRIC")),
        )
        self.sort = SortState()
        self.crosstab: Optional[CrosstabResult] = None
        self.charts: Optional[ChartBatch] = None

        self.filters.subscribe(self._on_filter_change)

    # ---------- notification ----------

    def _on_filter_change(self, snapshot: FilterSnapshot) -> None:
        logger.info("Filters changed (version %d): %s", snapshot.version, snapshot.as_dict())
        self.crosstab_engine.generations.supersede()
        self.chart_service.generations.supersede()

    # ---------- pivot ----------

    def set_pivot(
        self,
        row_dim: Optional[str] = None,
        col_dim: Optional[str] = None,
        metric: Optional[str] = None,
    ) -> None:
        """Update the pivot; dimension changes supersede the current batch."""
        new_row = self.registry.require(row_dim).id if row_dim else self.pivot.row_dim
        new_col = self.registry.require(col_dim).id if col_dim else self.pivot.col_dim
        new_metric = parse_metric(metric, self.pivot.metric) if metric else self.pivot.metric

        if (new_row, new_col) != (self.pivot.row_dim, self.pivot.col_dim):
            self.crosstab_engine.generations.supersede()
        self.pivot = PivotSettings(new_row, new_col, new_metric)

        if self.crosstab is not None and self.crosstab.matrix is not None:
            self.crosstab = replace(
                self.crosstab,
                metric=new_metric,
                matrix=self.crosstab.matrix.with_metric(new_metric),
            )

    def sort_by(self, key: Optional[str]) -> SortState:
        self.sort = self.sort.click(key or ROW_TOTAL)
        return self.sort

    # ---------- recompute ----------

    async def refresh_crosstab(self) -> Optional[CrosstabResult]:
        """Rebuild the matrix; a stale batch leaves the previous one in place."""
        pivot = self.pivot
        result = await self.crosstab_engine.build(
            pivot.row_dim, pivot.col_dim, pivot.metric, self.filters.snapshot()
        )
        if result is None:
            return self.crosstab
        self.crosstab = result
        self.sort = SortState()
        return result

    async def refresh_charts(self) -> Optional[ChartBatch]:
        batch = await self.chart_service.all_charts(self.filters.snapshot())
        if batch is not None:
            self.charts = batch
        return self.charts

    def known_values(self, dimension_id: str) -> List[str]:
        if self.datastore is None:
            return []
        dim = self.registry.require(dimension_id)
        if dim.id not in self.datastore.columns():
            logger.warning("Dimension %s is not present in the loaded table", dim.id)
            return []
        separator = self.builder.separator if dim.multi_valued else None
        return self.datastore.distinct_values(dim.id, separator)

    # ---------- rendering contract ----------

    def filter_view(self) -> Dict[str, Any]:
        pills = self.filters.pills()
        return {
            "state": self.filters.to_dict(),
            "query_string": self.filters.to_query_string(),
            "version": self.filters.version,
            "pills": pills,
            "show_clear_all": len(pills) > 1,
        }

    def crosstab_view(self) -> Dict[str, Any]:
        result = self.crosstab
        pivot = self.pivot
        out: Dict[str, Any] = {
            "row_dim": pivot.row_dim,
            "col_dim": pivot.col_dim,
            "row_label": self.registry.label(pivot.row_dim),
            "col_label": self.registry.label(pivot.col_dim),
            "metric": pivot.metric,
            "sort": self.sort.to_dict(),
        }
        if result is None:
            out["status"] = "pending"
            return out

        out["status"] = result.status
        out["generation"] = result.generation
        if result.status == "invalid_pivot":
            out["message"] = "Choose two different dimensions to build a crosstab."
            return out
        if result.status == "error":
            out["error"] = result.error
            return out
        if result.status == "empty" or result.matrix is None:
            out["message"] = "No data for current filters"
            return out

        matrix = result.matrix
        metric = matrix.metric
        heat = matrix_intensities(matrix, metric)
        rgb = tuple(self.config.get("HEATMAP_RGB", (88, 166, 255)))
        rows = []
        for row in sort_rows(matrix, self.sort, metric):
            cells = []
            for col in matrix.col_values:
                style = heat_style(heat[(row, col)], rgb)
                cells.append(
                    {
                        "col": col,
                        "count": matrix.count(row, col),
                        "value": matrix.value(row, col, metric),
                        "intensity": style.intensity,
                        "background": style.background,
                        "foreground": style.foreground,
                    }
                )
            rows.append({"row": row, "total": matrix.row_totals.get(row, 0), "cells": cells})

        out.update(
            {
                "columns": [
                    {"col": c, "total": matrix.col_totals.get(c, 0)} for c in matrix.col_values
                ],
                "rows": rows,
                "grand_total": matrix.grand_total,
                "max_value": matrix.max_value(metric),
            }
        )
        return out


__all__ = ["ExplorerSession", "PivotSettings"]
