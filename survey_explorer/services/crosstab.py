"""Crosstab engine: query planning, concurrent execution and assembly."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence, Tuple

import pandas as pd

from survey_explorer.errors import QueryExecutionError
from survey_explorer.services.dimensions import Dimension
from survey_explorer.services.matrix import CrosstabCell, Matrix, Metric
from survey_explorer.services.query_builder import (
    Params,
    Predicate,
    QueryBuilder,
    QueryRequest,
    rows_from_frame,
)
from survey_explorer.utils.filter_state import FilterSnapshot

logger = logging.getLogger("survey_explorer.crosstab")

Status = Literal["ok", "empty", "invalid_pivot", "error"]


class Executor(Protocol):
    async def execute(self, sql: str, params: Optional[Sequence[object]] = None) -> pd.DataFrame:
        ...


class GenerationCounter:
    """Monotonic tag for query batches; only the latest one may land."""

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def next(self) -> int:
        self._current += 1
        return self._current

    def supersede(self) -> None:
        """Invalidate whatever is in flight without issuing anything."""
        self._current += 1

    def is_current(self, generation: int) -> bool:
        return generation == self._current


@dataclass(frozen=True)
class CrosstabPlan:
    row_dim: Dimension
    col_dim: Dimension
    predicate: Predicate
    detail: Tuple[str, Params]
    row_totals: Tuple[str, Params]
    col_totals: Tuple[str, Params]


@dataclass(frozen=True)
class CrosstabResult:
    status: Status
    generation: int
    row_dim: str
    col_dim: str
    metric: Metric
    matrix: Optional[Matrix] = None
    error: Optional[str] = None


def cells_from_frame(df: Optional[pd.DataFrame]) -> List[CrosstabCell]:
    if df is None or df.empty:
        return []
    return [
        CrosstabCell(row_value=str(r), col_value=str(c), count=int(n))
        for r, c, n in zip(df["row_value"], df["col_value"], df["count"])
    ]


class CrosstabEngine:
    """Build a :class:`Matrix` from one detail and two marginal queries.

    Every call to :meth:`build` takes a new generation. A batch whose
    generation is no longer current when its queries resolve is dropped
    and :meth:`build` returns ``None``.
    """

    def __init__(
        self,
        builder: QueryBuilder,
        executor: Executor,
        generations: Optional[GenerationCounter] = None,
    ):
        self.builder = builder
        self.executor = executor
        self.generations = generations or GenerationCounter()

    def plan(self, row_dim_id: str, col_dim_id: str, snapshot: FilterSnapshot) -> CrosstabPlan:
        registry = self.builder.registry
        row_dim = registry.require(row_dim_id)
        col_dim = registry.require(col_dim_id)
        predicate = self.builder.build(snapshot)
        return CrosstabPlan(
            row_dim=row_dim,
            col_dim=col_dim,
            predicate=predicate,
            detail=self.builder.crosstab_sql(row_dim, col_dim, predicate),
            row_totals=self.builder.aggregate_sql(QueryRequest(predicate, row_dim)),
            col_totals=self.builder.aggregate_sql(QueryRequest(predicate, col_dim)),
        )

    async def build(
        self,
        row_dim_id: str,
        col_dim_id: str,
        metric: Metric,
        snapshot: FilterSnapshot,
    ) -> Optional[CrosstabResult]:
        generation = self.generations.next()
        base: Dict[str, Any] = dict(
            generation=generation, row_dim=row_dim_id, col_dim=col_dim_id, metric=metric
        )

        if row_dim_id == col_dim_id:
            # unknown ids still fail the allowlist before anything else
            self.builder.registry.require(row_dim_id)
            return CrosstabResult(status="invalid_pivot", **base)

        plan = self.plan(row_dim_id, col_dim_id, snapshot)
        outcomes = await asyncio.gather(
            self.executor.execute(*plan.detail),
            self.executor.execute(*plan.row_totals),
            self.executor.execute(*plan.col_totals),
            return_exceptions=True,
        )

        if not self.generations.is_current(generation):
            logger.debug(
                "Discarding stale crosstab generation %d (current %d)",
                generation,
                self.generations.current,
            )
            return None

        for outcome in outcomes:
            if isinstance(outcome, QueryExecutionError):
                logger.error("Crosstab %s x %s failed: %s", row_dim_id, col_dim_id, outcome.message)
                return CrosstabResult(status="error", error=outcome.message, **base)
            if isinstance(outcome, BaseException):
                raise outcome

        detail, row_totals, col_totals = outcomes
        matrix = Matrix.assemble(
            row_dim=row_dim_id,
            col_dim=col_dim_id,
            cells=cells_from_frame(detail),
            row_totals=rows_from_frame(row_totals),
            col_totals=rows_from_frame(col_totals),
            metric=metric,
        )
        logger.info(
            "Crosstab %s x %s generation %d: %d rows, %d cols",
            row_dim_id,
            col_dim_id,
            generation,
            len(matrix.row_values),
            len(matrix.col_values),
        )
        status: Status = "empty" if matrix.is_empty else "ok"
        return CrosstabResult(status=status, matrix=matrix, **base)


__all__ = [
    "CrosstabEngine",
    "CrosstabPlan",
    "CrosstabResult",
    "Executor",
    "GenerationCounter",
    "cells_from_frame",
]
