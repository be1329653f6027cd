"""Data access helpers: the DuckDB-backed analytical execution service."""

from __future__ import annotations
import asyncio
import logging
import os
from io import BytesIO
from typing import Any, List, Mapping, Optional, Sequence
import duckdb
import pandas as pd
import requests

from survey_explorer.errors import QueryExecutionError
from survey_explorer.services.query_builder import quote_identifier, quote_literal

logger = logging.getLogger("survey_explorer")


class DataStore:
    """Own the DuckDB connection and the survey table.

    Storage backend: DuckDB (``DUCKDB_PATH``, in memory by default)
    - Source data: ``DATA_PATH`` (parquet or csv), else ``DATA_URL``
    - Materialized table: ``TABLE_NAME``
    """

    def __init__(self, config: Mapping[str, Any]):
        self.config = config
        self.table = str(config.get("TABLE_NAME", "survey"))
        self._con: Optional[duckdb.DuckDBPyConnection] = None
        self._loaded = False

    # ---------- DuckDB helpers ----------

    def _connect(self) -> duckdb.DuckDBPyConnection:
        if self._con is None:
            db_path = str(self.config.get("DUCKDB_PATH") or ":memory:")
            if db_path != ":memory:" and os.path.dirname(db_path):
                os.makedirs(os.path.dirname(db_path), exist_ok=True)
            self._con = duckdb.connect(db_path)
        return self._con

    def _table_exists(self) -> bool:
        con = self._connect()
        try:
            return bool(
                con.execute(
                    "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?;",
                    [self.table],
                ).fetchone()[0]
            )
        except duckdb.Error:
            return False

    def load_from_path(self, path: str) -> None:
        """Full rebuild of the survey table from a parquet or csv file."""
        con = self._connect()
        reader = "read_csv_auto" if path.lower().endswith(".csv") else "read_parquet"
        logger.info("Building %s from %s", self.table, path)
        con.execute(f"DROP TABLE IF EXISTS {quote_identifier(self.table)};")
        con.execute(
            f"CREATE TABLE {quote_identifier(self.table)} AS "
            f"SELECT * FROM {reader}({quote_literal(path)});"
        )
        con.execute(f"ANALYZE {quote_identifier(self.table)};")
        self._loaded = True
        logger.info("Loaded %d survey responses", self.row_count())

    def fetch_remote(self) -> bool:
        url = self.config.get("DATA_URL")
        if not url:
            logger.warning("No DATA_URL configured.")
            return False
        headers = {}
        if self.config.get("DATA_API_KEY"):
            headers["apikey"] = self.config.get("DATA_API_KEY")
        try:
            resp = requests.get(url, headers=headers, timeout=60)
            resp.raise_for_status()
        except (requests.HTTPError, requests.ConnectionError, requests.Timeout) as e:
            logger.error("Failed to fetch remote survey from DATA_URL: %s", e)
            return False
        raw = pd.read_parquet(BytesIO(resp.content))
        logger.info("Loaded remote parquet from DATA_URL.")
        self.set_df(raw)
        return True

    def set_df(self, df: pd.DataFrame) -> None:
        con = self._connect()
        con.execute(f"DROP TABLE IF EXISTS {quote_identifier(self.table)};")
        con.register("tmp_df", df)
        con.execute(f"CREATE TABLE {quote_identifier(self.table)} AS SELECT * FROM tmp_df;")
        con.unregister("tmp_df")
        con.execute(f"ANALYZE {quote_identifier(self.table)};")
        self._loaded = True
        logger.info("Persisted DataFrame into DuckDB %s (%d rows).", self.table, len(df))

    def ensure_loaded(self) -> bool:
        """Load the dataset on first use; False when no source succeeded."""
        if self._loaded or self._table_exists():
            self._loaded = True
            return True

        path = str(self.config.get("DATA_PATH") or "")
        if path and os.path.exists(path):
            try:
                self.load_from_path(path)
                return True
            except duckdb.Error as e:
                logger.warning("Loading %s failed: %s", path, e)

        if self.fetch_remote():
            return True

        logger.error("No data source succeeded; survey table is unavailable.")
        return False

    # ---------- query execution ----------

    def run_query(self, sql: str, params: Optional[Sequence[object]] = None) -> pd.DataFrame:
        """Execute SQL on DuckDB and return as pandas DataFrame."""
        con = self._connect()
        try:
            return con.execute(sql, list(params or [])).df()
        except duckdb.Error as e:
            raise QueryExecutionError(str(e), sql) from e

    async def execute(self, sql: str, params: Optional[Sequence[object]] = None) -> pd.DataFrame:
        """Run a query on a worker thread with its own cursor."""
        cursor = self._connect().cursor()

        def _run() -> pd.DataFrame:
            try:
                return cursor.execute(sql, list(params or [])).df()
            finally:
                cursor.close()

        try:
            return await asyncio.to_thread(_run)
        except duckdb.Error as e:
            raise QueryExecutionError(str(e), sql) from e

    # ---------- dataset facts ----------

    def columns(self) -> List[str]:
        if not self._table_exists():
            return []
        df = self.run_query(f"SELECT * FROM {quote_identifier(self.table)} LIMIT 0;")
        return [str(c) for c in df.columns]

    def row_count(self) -> int:
        df = self.run_query(f"SELECT COUNT(*) AS n FROM {quote_identifier(self.table)};")
        return int(df.iloc[0]["n"])

    def distinct_values(self, column: str, separator: Optional[str] = None) -> List[str]:
        """Distinct non-null values; list columns are split into tokens."""
        col = f"CAST({quote_identifier(column)} AS VARCHAR)"
        if separator:
            source = f"unnest(string_split({col}, {quote_literal(separator)}))"
        else:
            source = col
        df = self.run_query(
            f"""
            SELECT DISTINCT trim(v) AS v FROM (
              SELECT {source} AS v
              FROM {quote_identifier(self.table)}
              WHERE {quote_identifier(column)} IS NOT NULL
            )
            WHERE trim(v) <> ''
            ORDER BY 1
            """
        )
        if df is None or df.empty:
            return []
        return df["v"].astype(str).tolist()


__all__ = ["DataStore"]
