from __future__ import annotations

import pytest

from survey_explorer.errors import QueryExecutionError, UnknownDimensionError
from survey_explorer.services.dimensions import DimensionRegistry
from survey_explorer.utils.filter_state import FilterSnapshot, FilterState, truncate_text


def test_set_value_and_clear_with_empty_value(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("role", "Data Engineer")
    assert state.get("role") == "Data Engineer"

    state.set_value("role", "")
    assert state.get("role") is None
    state.set_value("region", "Europe")
    state.set_value("region", None)
    assert len(state) == 0


def test_second_write_wins_across_origins(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("role", "Analyst")
    state.toggle_chart_filter("role", "Manager")
    assert state.snapshot().selections == (("role", "Manager"),)
    assert state.origin("role") == "chart"


def test_toggle_twice_restores_prior_value(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.toggle_chart_filter("industry", "Tech")
    state.toggle_chart_filter("industry", "Tech")
    assert state.get("industry") is None

    state.set_value("role", "Analyst")
    state.set_value("region", "Asia")
    before = state.snapshot().selections
    state.toggle_chart_filter("role", "Manager")
    state.toggle_chart_filter("role", "Manager")
    assert state.snapshot().selections == before
    assert state.origin("role") == "dropdown"


def test_set_value_drops_toggle_memory(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("role", "Analyst")
    state.toggle_chart_filter("role", "Manager")
    state.set_value("role", "Data Engineer", origin="chart")
    state.toggle_chart_filter("role", "Data Engineer")
    assert state.get("role") is None


def test_unknown_dimension_is_rejected(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    with pytest.raises(UnknownDimensionError):
        state.set_value("role; DROP TABLE survey", "x")
    with pytest.raises(UnknownDimensionError):
        state.toggle_chart_filter("nope", "x")


def test_every_mutation_notifies_once(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    seen: list = []
    unsubscribe = state.subscribe(seen.append)

    state.set_value("role", "Analyst")
    state.toggle_chart_filter("region", "Asia")
    state.set_search("lake")
    state.remove("region")
    state.clear()

    assert [s.version for s in seen] == [1, 2, 3, 4, 5]
    assert all(isinstance(s, FilterSnapshot) for s in seen)
    assert seen[-1].is_empty

    unsubscribe()
    state.set_value("role", "Manager")
    assert len(seen) == 5


def test_snapshot_is_not_affected_by_later_mutation(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("role", "Analyst")
    snap = state.snapshot()
    state.set_value("role", "Manager")
    assert snap.get("role") == "Analyst"
    assert state.snapshot().get("role") == "Manager"


def test_to_dict_splits_chart_filters(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("role", "Analyst")
    state.toggle_chart_filter("industry", "Tech")
    state.set_search("cloud")
    assert state.to_dict() == {
        "filters": {"role": "Analyst"},
        "chart_filters": {"industry": "Tech"},
        "search": "cloud",
    }


def test_query_string_round_trip(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("industry", "Farmer's Co-op & Sons")
    state.toggle_chart_filter("region", "North America")
    state.set_search("data quality")

    qs = state.to_query_string()
    assert " " not in qs and "&Sons" not in qs

    restored = FilterState(registry)
    restored.restore(FilterState.parse_query_string("?" + qs), lambda dim: [state.get(dim) or ""])
    assert restored.to_dict() == state.to_dict()


def test_restore_drops_stale_values(registry: DimensionRegistry) -> None:
    known = {"role": ["Analyst", "Manager"], "region": ["Asia"]}
    state = FilterState(registry)
    rejected = state.restore(
        {
            "filters": {"role": "Analyst", "bogus": "x", "org_size": "1-50"},
            "chart_filters": {"region": "Atlantis"},
            "search": "ops",
        },
        lambda dim: known.get(dim, []),
    )
    assert state.to_dict() == {"filters": {"role": "Analyst"}, "chart_filters": {}, "search": "ops"}
    assert ("bogus", "x") in rejected
    assert ("org_size", "1-50") in rejected
    assert ("region", "Atlantis") in rejected


def test_restore_tolerates_malformed_payload(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.set_value("role", "Analyst")
    state.restore({"filters": ["role"], "search": 42}, lambda dim: [])
    assert state.to_dict() == {"filters": {}, "chart_filters": {}, "search": ""}


def test_pills_truncate_long_values(registry: DimensionRegistry) -> None:
    state = FilterState(registry)
    state.toggle_chart_filter("biggest_bottleneck", "Legacy systems and tooling debt")
    (pill,) = state.pills()
    assert pill["label"] == "Bottleneck"
    assert pill["display_value"] == "Legacy systems and …"
    assert len(pill["display_value"]) == 20
    assert truncate_text("short", 20) == "short"


def test_restore_keeps_going_when_value_lookup_fails(registry: DimensionRegistry) -> None:
    def known(dim: str) -> list:
        if dim == "region":
            raise QueryExecutionError("Binder Error: column not found")
        return ["Analyst"]

    state = FilterState(registry)
    rejected = state.restore({"filters": {"role": "Analyst", "region": "Asia"}}, known)
    assert rejected == [("region", "Asia")]
    assert state.get("role") == "Analyst"
