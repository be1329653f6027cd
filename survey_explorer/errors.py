"""Exception types shared across the explorer."""

from __future__ import annotations


class ExplorerError(Exception):
    """Base class for explorer failures."""


class UnknownDimensionError(ExplorerError, KeyError):
    """Raised when an identifier is not part of the dimension registry."""

    def __init__(self, dimension_id: str):
        super().__init__(dimension_id)
        self.dimension_id = dimension_id

    def __str__(self) -> str:
        return f"Unknown dimension: {self.dimension_id!r}"


class InvalidMetricError(ExplorerError, ValueError):
    """Raised for a metric outside count, row_pct and col_pct."""


class QueryExecutionError(ExplorerError):
    """The analytical engine rejected or failed a query."""

    def __init__(self, message: str, sql: str = ""):
        super().__init__(message)
        self.message = message
        self.sql = sql


__all__ = [
    "ExplorerError",
    "InvalidMetricError",
    "QueryExecutionError",
    "UnknownDimensionError",
]
