# filter_state.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Callable,
    Collection,
    Dict,
    List,
    Literal,
    Mapping,
    Optional,
    Tuple,
)
from urllib.parse import parse_qsl, urlencode

from survey_explorer.errors import QueryExecutionError, UnknownDimensionError
from survey_explorer.services.dimensions import DimensionRegistry

if TYPE_CHECKING:
    from survey_explorer.services.query_builder import Predicate, QueryBuilder

logger = logging.getLogger("survey_explorer.filters")

Origin = Literal["dropdown", "chart"]

CHART_PREFIX = "chart."
SEARCH_KEY = "q"
PILL_MAX_CHARS = 20


def _clean(value: Optional[object]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def truncate_text(text: str, max_length: int) -> str:
    if not text or len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


@dataclass(frozen=True)
class FilterSnapshot:
    """Immutable view of the filter state at one point in time."""

    selections: Tuple[Tuple[str, str], ...] = ()
    search: str = ""
    version: int = 0

    def get(self, dimension_id: str) -> Optional[str]:
        for key, value in self.selections:
            if key == dimension_id:
                return value
        return None

    def as_dict(self) -> Dict[str, str]:
        return dict(self.selections)

    @property
    def is_empty(self) -> bool:
        return not self.selections and not self.search


Listener = Callable[[FilterSnapshot], None]


class FilterState:
    """Active single-value constraints plus an optional search string.

    Dropdown and chart filters share one namespace: a dimension holds at
    most one value and the latest write wins. Every mutation bumps
    :attr:`version` and notifies subscribers once, synchronously.
    """

    def __init__(self, registry: DimensionRegistry):
        self._registry = registry
        self._values: Dict[str, str] = {}
        self._origins: Dict[str, Origin] = {}
        # value displaced by a chart toggle, restored when toggled off
        self._displaced: Dict[str, Tuple[str, Origin]] = {}
        self._search = ""
        self._version = 0
        self._listeners: List[Listener] = []

    # -------- read access --------
    @property
    def version(self) -> int:
        return self._version

    @property
    def search(self) -> str:
        return self._search

    def get(self, dimension_id: str) -> Optional[str]:
        return self._values.get(dimension_id)

    def origin(self, dimension_id: str) -> Optional[Origin]:
        return self._origins.get(dimension_id)

    def __len__(self) -> int:
        return len(self._values)

    def snapshot(self) -> FilterSnapshot:
        return FilterSnapshot(
            selections=tuple(self._values.items()),
            search=self._search,
            version=self._version,
        )

    # -------- mutations --------
    def set_value(
        self, dimension_id: str, value: Optional[object], origin: Origin = "dropdown"
    ) -> None:
        """Set a constraint, or clear it when ``value`` is empty."""
        key = self._registry.require(dimension_id).id
        cleaned = _clean(value)
        self._displaced.pop(key, None)
        if cleaned:
            self._values[key] = cleaned
            self._origins[key] = origin
        else:
            self._values.pop(key, None)
            self._origins.pop(key, None)
        self._changed()

    def toggle_chart_filter(self, dimension_id: str, value: Optional[object]) -> None:
        """Click-to-filter: set the value, or remove it when already active."""
        key = self._registry.require(dimension_id).id
        cleaned = _clean(value)
        if not cleaned:
            self.remove(key)
            return

        if self._values.get(key) == cleaned:
            prior = self._displaced.pop(key, None)
            if prior is None:
                del self._values[key]
                del self._origins[key]
            else:
                self._values[key], self._origins[key] = prior
        else:
            if key in self._values:
                self._displaced[key] = (self._values[key], self._origins[key])
            else:
                self._displaced.pop(key, None)
            self._values[key] = cleaned
            self._origins[key] = "chart"
        self._changed()

    def remove(self, dimension_id: str) -> None:
        key = self._registry.require(dimension_id).id
        self._values.pop(key, None)
        self._origins.pop(key, None)
        self._displaced.pop(key, None)
        self._changed()

    def set_search(self, text: Optional[str]) -> None:
        self._search = _clean(text)
        self._changed()

    def clear(self) -> None:
        self._values.clear()
        self._origins.clear()
        self._displaced.clear()
        self._search = ""
        self._changed()

    def to_predicate(
        self, builder: "QueryBuilder", extra: Optional["Predicate"] = None
    ) -> "Predicate":
        """Current constraints ANDed with an optional extra condition.

        ``extra`` must come from the builder (e.g. ``builder.not_null(dim)``).
        """
        return builder.build(self.snapshot(), extra)

    # -------- notification --------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        self._version += 1
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # -------- persistence --------
    def to_dict(self) -> Dict[str, object]:
        """Serializable shape: dropdown filters, chart filters and search."""
        filters = {k: v for k, v in self._values.items() if self._origins[k] == "dropdown"}
        chart = {k: v for k, v in self._values.items() if self._origins[k] == "chart"}
        return {"filters": filters, "chart_filters": chart, "search": self._search}

    def to_query_string(self) -> str:
        pairs: List[Tuple[str, str]] = []
        for key, value in self._values.items():
            prefix = CHART_PREFIX if self._origins[key] == "chart" else ""
            pairs.append((prefix + key, value))
        if self._search:
            pairs.append((SEARCH_KEY, self._search))
        return urlencode(pairs)

    @staticmethod
    def parse_query_string(query: str) -> Dict[str, object]:
        """Inverse of :meth:`to_query_string`; returns the persisted shape."""
        filters: Dict[str, str] = {}
        chart: Dict[str, str] = {}
        search = ""
        for key, value in parse_qsl(query.lstrip("?"), keep_blank_values=False):
            if key == SEARCH_KEY:
                search = value
            elif key.startswith(CHART_PREFIX):
                chart[key[len(CHART_PREFIX):]] = value
            else:
                filters[key] = value
        return {"filters": filters, "chart_filters": chart, "search": search}

    def restore(
        self,
        payload: Mapping[str, object],
        known_values: Callable[[str], Collection[str]],
    ) -> List[Tuple[str, str]]:
        """Replace the state with a persisted shape, skipping stale entries.

        ``known_values`` returns the values currently present in the dataset
        for a dimension. Entries naming unknown dimensions or values that no
        longer exist are dropped and returned; nothing raises.
        """
        rejected: List[Tuple[str, str]] = []
        values: Dict[str, str] = {}
        origins: Dict[str, Origin] = {}

        sections: List[Tuple[str, Origin]] = [("filters", "dropdown"), ("chart_filters", "chart")]
        for section, origin in sections:
            raw = payload.get(section) or {}
            if not isinstance(raw, Mapping):
                logger.warning("Ignoring malformed %s section in restored state", section)
                continue
            for key, value in raw.items():
                cleaned = _clean(value)
                if not cleaned:
                    continue
                try:
                    dim = self._registry.require(str(key))
                except UnknownDimensionError:
                    rejected.append((str(key), cleaned))
                    continue
                try:
                    known = set(known_values(dim.id))
                except QueryExecutionError as exc:
                    logger.warning("Could not check %s values: %s", dim.id, exc.message)
                    known = set()
                if cleaned not in known:
                    rejected.append((dim.id, cleaned))
                    continue
                values[dim.id] = cleaned
                origins[dim.id] = origin

        if rejected:
            logger.warning("Dropped %d stale filter value(s) on restore: %s", len(rejected), rejected)

        search = payload.get("search")
        self._values = values
        self._origins = origins
        self._displaced = {}
        self._search = _clean(search) if isinstance(search, str) else ""
        self._changed()
        return rejected

    # -------- display --------
    def pills(self) -> List[Dict[str, str]]:
        return [
            {
                "dimension": key,
                "label": self._registry.label(key),
                "value": value,
                "display_value": truncate_text(value, PILL_MAX_CHARS),
                "origin": self._origins[key],
            }
            for key, value in self._values.items()
        ]


__all__ = ["FilterSnapshot", "FilterState", "Origin", "truncate_text"]
