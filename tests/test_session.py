from __future__ import annotations

import asyncio

import pytest

from conftest import GatedExecutor, base_config, survey_frame
from survey_explorer.errors import UnknownDimensionError
from survey_explorer.services.datastore import DataStore
from survey_explorer.services.session import ExplorerSession
from survey_explorer.services.sorting import ROW_TOTAL


@pytest.mark.asyncio
async def test_toggle_twice_restores_matrix(session: ExplorerSession) -> None:
    session.set_pivot("industry", "org_size")
    original = await session.refresh_crosstab()

    session.filters.toggle_chart_filter("region", "Europe")
    filtered = await session.refresh_crosstab()
    assert filtered.matrix != original.matrix

    session.filters.toggle_chart_filter("region", "Europe")
    restored = await session.refresh_crosstab()
    assert restored.generation > original.generation
    assert restored.matrix == original.matrix


@pytest.mark.asyncio
async def test_filter_change_supersedes_in_flight_crosstab(datastore: DataStore) -> None:
    executor = GatedExecutor(datastore)
    session = ExplorerSession(base_config(), executor=executor, datastore=datastore)
    baseline = await session.refresh_crosstab()

    executor.gate = asyncio.Event()
    pending = asyncio.create_task(session.refresh_crosstab())
    while executor.started < 6:
        await asyncio.sleep(0)

    session.filters.set_value("role", "Analyst")
    executor.gate.set()
    assert await pending is baseline
    assert session.crosstab is baseline


@pytest.mark.asyncio
async def test_fresh_matrix_resets_sort(session: ExplorerSession) -> None:
    await session.refresh_crosstab()
    session.sort_by("Europe")
    session.sort_by("Europe")
    assert not session.sort.descending

    await session.refresh_crosstab()
    assert session.sort.key == ROW_TOTAL and session.sort.descending


@pytest.mark.asyncio
async def test_metric_switch_does_not_requery(datastore: DataStore) -> None:
    executor = GatedExecutor(datastore)
    session = ExplorerSession(base_config(), executor=executor, datastore=datastore)
    await session.refresh_crosstab()
    started = executor.started

    session.set_pivot(metric="row_pct")
    view = session.crosstab_view()
    assert executor.started == started
    assert view["metric"] == "row_pct"
    for row in view["rows"]:
        assert sum(c["value"] for c in row["cells"]) == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_crosstab_view_shape(session: ExplorerSession) -> None:
    assert session.crosstab_view()["status"] == "pending"
    await session.refresh_crosstab()
    view = session.crosstab_view()

    assert view["status"] == "ok"
    assert view["row_label"] == "Role" and view["col_label"] == "Region"
    assert [r["row"] for r in view["rows"]] == ["Data Engineer", "Analyst", "Analytics Engineer", "Manager"]
    assert [c["col"] for c in view["columns"]] == ["Europe", "Asia", "North America"]
    assert view["grand_total"] == 9
    first = view["rows"][0]["cells"][0]
    assert first["intensity"] == 1.0
    assert first["foreground"] != view["rows"][-1]["cells"][0]["foreground"]

    session.sort_by("Asia")
    resorted = session.crosstab_view()
    assert [r["row"] for r in resorted["rows"]][:1] == ["Analyst"]
    assert resorted["sort"] == {"key": "Asia", "by_row_total": False, "direction": "desc"}


@pytest.mark.asyncio
async def test_invalid_pivot_view(session: ExplorerSession) -> None:
    session.set_pivot("region", "region")
    await session.refresh_crosstab()
    view = session.crosstab_view()
    assert view["status"] == "invalid_pivot"
    assert "rows" not in view


def test_set_pivot_rejects_unknown_dimension(session: ExplorerSession) -> None:
    with pytest.raises(UnknownDimensionError):
        session.set_pivot(row_dim="salary")


def test_known_values_split_list_columns(session: ExplorerSession) -> None:
    assert session.known_values("pain_points") == ["Budget", "Data quality", "Hiring", "Tooling"]
    assert session.known_values("region") == ["Asia", "Europe", "North America"]


def test_filter_view(session: ExplorerSession) -> None:
    session.filters.set_value("role", "Analyst")
    session.filters.toggle_chart_filter("region", "Asia")
    view = session.filter_view()
    assert view["show_clear_all"]
    assert view["query_string"] == "role=Analyst&chart.region=Asia"
    assert [p["dimension"] for p in view["pills"]] == ["role", "region"]


def test_restore_skips_dimension_missing_from_table() -> None:
    config = base_config()
    store = DataStore(config)
    store.set_df(survey_frame().drop(columns=["team_growth_2026"]))
    session = ExplorerSession(config, executor=store, datastore=store)

    assert session.known_values("team_growth_2026") == []
    rejected = session.filters.restore(
        {"filters": {"role": "Analyst"}, "chart_filters": {"team_growth_2026": "Grow"}},
        session.known_values,
    )
    assert rejected == [("team_growth_2026", "Grow")]
    assert session.filters.to_dict()["filters"] == {"role": "Analyst"}
