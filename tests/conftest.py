from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import pytest

from survey_explorer.config import Config
from survey_explorer.errors import QueryExecutionError
from survey_explorer.services.datastore import DataStore
from survey_explorer.services.dimensions import DimensionRegistry
from survey_explorer.services.query_builder import QueryBuilder
from survey_explorer.services.session import ExplorerSession

# role, org_size, industry, region, pain_points
RESPONSES = [
    ("Data Engineer", "1-50", "Tech", "Europe", "Data quality, Tooling"),
    ("Data Engineer", "51-500", "Finance", "North America", "Data quality"),
    ("Data Engineer", "1-50", "Tech", "North America", "Tooling, Hiring"),
    ("Analyst", "500+", "Finance", "Europe", "Hiring"),
    ("Analyst", "1-50", "Retail", "Asia", "Data quality, Hiring"),
    ("Analytics Engineer", "51-500", "Tech", "Europe", None),
    ("Data Engineer", "500+", "Retail", "Europe", "Data quality,Tooling , Data quality"),
    ("Manager", "500+", None, "Asia", "Budget"),
    ("Analyst", "51-500", "Farmer's Co-op", "Asia", "Tooling"),
]


def survey_frame() -> pd.DataFrame:
    rows = []
    for i, (role, org_size, industry, region, pain) in enumerate(RESPONSES):
        rows.append(
            {
                "role": role,
                "org_size": org_size,
                "industry": industry,
                "region": region,
                "ai_usage_frequency": ["Daily", "Weekly", "Never"][i % 3],
                "storage_environment": ["Cloud", "On-prem"][i % 2],
                "architecture_trend": ["Lakehouse", "Warehouse", "Mesh"][i % 3],
                "team_growth_2026": ["Grow", "Flat"][i % 2],
                "biggest_bottleneck": ["Legacy systems", "Stakeholders", "Budget"][i % 3],
                "pain_points": pain,
            }
        )
    return pd.DataFrame(rows)


def base_config(**overrides: Any) -> Dict[str, Any]:
    config = {k: getattr(Config, k) for k in dir(Config) if k.isupper()}
    config.update({"DUCKDB_PATH": ":memory:", "DATA_PATH": "", "DATA_URL": None})
    config.update(overrides)
    return config


@pytest.fixture
def config() -> Dict[str, Any]:
    return base_config()


@pytest.fixture
def registry(config: Dict[str, Any]) -> DimensionRegistry:
    return DimensionRegistry(config["DIMENSIONS"])


@pytest.fixture
def builder(registry: DimensionRegistry, config: Dict[str, Any]) -> QueryBuilder:
    return QueryBuilder(
        registry,
        table=config["TABLE_NAME"],
        separator=config["LIST_SEPARATOR"],
        search_columns=config["SEARCH_COLUMNS"],
    )


@pytest.fixture
def datastore(config: Dict[str, Any]) -> DataStore:
    store = DataStore(config)
    store.set_df(survey_frame())
    return store


@pytest.fixture
def session(config: Dict[str, Any], datastore: DataStore) -> ExplorerSession:
    return ExplorerSession(config, executor=datastore, datastore=datastore)


class GatedExecutor:
    """Delegates to a real executor, optionally holding calls on an event."""

    def __init__(self, inner: Any):
        self.inner = inner
        self.gate: Optional[asyncio.Event] = None
        self.started = 0

    async def execute(self, sql: str, params: Optional[Sequence[object]] = None) -> pd.DataFrame:
        gate = self.gate
        self.started += 1
        if gate is not None:
            await gate.wait()
        return await self.inner.execute(sql, params)


class FailingExecutor:
    """Raises a query error for any SQL containing one of ``markers``."""

    def __init__(self, inner: Any, markers: List[str]):
        self.inner = inner
        self.markers = markers

    async def execute(self, sql: str, params: Optional[Sequence[object]] = None) -> pd.DataFrame:
        for marker in self.markers:
            if marker in sql:
                raise QueryExecutionError(f"Binder Error: boom near {marker}", sql)
        return await self.inner.execute(sql, params)
