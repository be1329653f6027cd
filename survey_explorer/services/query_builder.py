"""Predicate and aggregation SQL builders (DuckDB dialect).

Literal values always travel as bound ``?`` parameters. Identifiers are
only ever taken from the :class:`DimensionRegistry`, since they cannot be
parameterised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from survey_explorer.services.dimensions import Dimension, DimensionRegistry
from survey_explorer.utils.filter_state import FilterSnapshot

Params = Tuple[object, ...]


def quote_literal(value: object) -> str:
    """SQL string literal with single quotes doubled."""
    return "'" + str(value).replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class Predicate:
    """AND-combination of atomic conditions with their bound parameters."""

    conditions: Tuple[str, ...] = ()
    params: Params = ()

    def __bool__(self) -> bool:
        return bool(self.conditions)

    @property
    def clause(self) -> str:
        """Conditions joined by AND; empty string when there are none."""
        return " AND ".join(self.conditions)

    @property
    def sql(self) -> str:
        """Always-valid clause: ``1=1`` stands in for an empty predicate."""
        return self.clause or "1=1"

    def where(self) -> str:
        return f"WHERE {self.clause}" if self.conditions else ""

    def and_(self, *others: Optional["Predicate"]) -> "Predicate":
        conditions = list(self.conditions)
        params = list(self.params)
        for other in others:
            if other is None:
                continue
            if not isinstance(other, Predicate):
                # raw SQL text bypasses the identifier allowlist
                raise TypeError(f"expected Predicate, got {type(other).__name__}")
            conditions.extend(other.conditions)
            params.extend(other.params)
        return Predicate(tuple(conditions), tuple(params))

    def render(self) -> str:
        """Clause with every parameter inlined as an escaped literal."""
        parts = self.clause.split("?")
        if len(parts) - 1 != len(self.params):
            raise ValueError("placeholder count does not match parameters")
        out = [parts[0]]
        for value, tail in zip(self.params, parts[1:]):
            out.append(quote_literal(value))
            out.append(tail)
        return "".join(out)


@dataclass(frozen=True)
class QueryRequest:
    """Single-dimension aggregation; read-only once created."""

    predicate: Predicate
    dimension: Dimension
    limit: Optional[int] = None


@dataclass(frozen=True)
class ResultRow:
    label: str
    count: int


def rows_from_frame(df: Optional[pd.DataFrame]) -> List[ResultRow]:
    if df is None or df.empty:
        return []
    return [ResultRow(label=str(label), count=int(count)) for label, count in zip(df["label"], df["count"])]


class QueryBuilder:
    """Turn filter snapshots into predicates and predicates into SQL."""

    def __init__(
        self,
        registry: DimensionRegistry,
        table: str = "survey",
        separator: str = ",",
        search_columns: Iterable[str] = (),
    ):
        self.registry = registry
        self.table = table
        self.separator = separator
        # validated up front so a bad config fails at startup
        self.search_columns: List[Dimension] = registry.subset(search_columns)

    # -------- atomic conditions --------
    def _column(self, dim: Dimension) -> str:
        return f"CAST({quote_identifier(dim.id)} AS VARCHAR)"

    def not_null(self, dimension_id: str) -> Predicate:
        dim = self.registry.require(dimension_id)
        return Predicate((f"{quote_identifier(dim.id)} IS NOT NULL",))

    def equals(self, dimension_id: str, value: object) -> Predicate:
        """Equality on an atomic column, token membership on a list column."""
        dim = self.registry.require(dimension_id)
        if not dim.multi_valued:
            return Predicate((f"{self._column(dim)} = ?",), (str(value),))

        sep = quote_literal(self.separator)
        pattern = quote_literal(r"\s*" + re.escape(self.separator) + r"\s*")
        normalized = f"regexp_replace(trim({self._column(dim)}), {pattern}, {sep}, 'g')"
        condition = f"strpos({sep} || {normalized} || {sep}, ?) > 0"
        return Predicate((condition,), (f"{self.separator}{value}{self.separator}",))

    def search(self, text: str) -> Predicate:
        """Case-insensitive substring match over the search columns."""
        text = (text or "").strip()
        if not text or not self.search_columns:
            return Predicate()
        ors = [f"contains(lower({self._column(d)}), lower(?))" for d in self.search_columns]
        return Predicate(("(" + " OR ".join(ors) + ")",), tuple(text for _ in ors))

    def build(self, snapshot: FilterSnapshot, *extra: Optional[Predicate]) -> Predicate:
        """Combine every active constraint, the search and any extra conditions."""
        pred = Predicate()
        for dimension_id, value in snapshot.selections:
            pred = pred.and_(self.equals(dimension_id, value))
        return pred.and_(self.search(snapshot.search), *extra)

    # -------- aggregations --------
    def _tokens(self, dim: Dimension, source: str) -> str:
        """SELECT yielding (_rid, value) from ``base``; list columns exploded."""
        if not dim.multi_valued:
            return f"SELECT _rid, {source} AS value FROM base"
        sep = quote_literal(self.separator)
        return (
            f"SELECT DISTINCT _rid, trim(tok) AS value "
            f"FROM (SELECT _rid, unnest(string_split({source}, {sep})) AS tok FROM base) "
            f"WHERE trim(tok) <> ''"
        )

    def aggregate_sql(self, request: QueryRequest) -> Tuple[str, Params]:
        dim = self.registry.require(request.dimension.id)
        pred = request.predicate.and_(self.not_null(dim.id))
        limit = f"LIMIT {int(request.limit)}" if request.limit else ""
        sql = f"""
            WITH base AS (
              SELECT row_number() OVER () AS _rid, {self._column(dim)} AS _v
              FROM {quote_identifier(self.table)}
              {pred.where()}
            ),
            tokens AS ({self._tokens(dim, "_v")})
            SELECT value AS label, COUNT(*) AS count
            FROM tokens
            GROUP BY value
            ORDER BY count DESC, label
            {limit}
        """
        return sql, pred.params

    def crosstab_sql(
        self, row_dim: Dimension, col_dim: Dimension, predicate: Predicate
    ) -> Tuple[str, Params]:
        row_dim = self.registry.require(row_dim.id)
        col_dim = self.registry.require(col_dim.id)
        pred = predicate.and_(self.not_null(row_dim.id), self.not_null(col_dim.id))
        sql = f"""
            WITH base AS (
              SELECT row_number() OVER () AS _rid,
                     {self._column(row_dim)} AS _row,
                     {self._column(col_dim)} AS _col
              FROM {quote_identifier(self.table)}
              {pred.where()}
            ),
            row_tokens AS ({self._tokens(row_dim, "_row")}),
            col_tokens AS ({self._tokens(col_dim, "_col")})
            SELECT r.value AS row_value, c.value AS col_value, COUNT(*) AS count
            FROM row_tokens r
            JOIN col_tokens c USING (_rid)
            GROUP BY r.value, c.value
        """
        return sql, pred.params

    def count_sql(self, predicate: Predicate) -> Tuple[str, Params]:
        sql = f"SELECT COUNT(*) AS n FROM {quote_identifier(self.table)} {predicate.where()}"
        return sql, predicate.params


__all__ = [
    "Predicate",
    "QueryBuilder",
    "QueryRequest",
    "ResultRow",
    "quote_identifier",
    "quote_literal",
    "rows_from_frame",
]
