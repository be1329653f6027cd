"""Static dimension registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from survey_explorer.errors import UnknownDimensionError


@dataclass(frozen=True)
class Dimension:
    id: str
    label: str
    multi_valued: bool = False


class DimensionRegistry:
    """Encapsulate the known columns and their metadata.

    The registry is the identifier allowlist: query code only ever
    interpolates ``Dimension.id`` values obtained through :meth:`require`.
    """

    def __init__(self, mapping: Mapping[str, Tuple[str, bool]]):
        self._dims: Dict[str, Dimension] = {
            key: Dimension(id=key, label=label, multi_valued=bool(multi))
            for key, (label, multi) in mapping.items()
        }

    def __contains__(self, key: object) -> bool:
        return key in self._dims

    def __iter__(self) -> Iterator[Dimension]:
        return iter(self._dims.values())

    def __len__(self) -> int:
        return len(self._dims)

    def get(self, key: Optional[str]) -> Optional[Dimension]:
        if not key:
            return None
        return self._dims.get(key)

    def require(self, key: Optional[str]) -> Dimension:
        dim = self.get(key)
        if dim is None:
            raise UnknownDimensionError(str(key))
        return dim

    def label(self, key: Optional[str]) -> str:
        if not key:
            return ""
        dim = self._dims.get(key)
        return dim.label if dim else key

    def subset(self, keys: Iterable[str]) -> List[Dimension]:
        return [self.require(k) for k in keys]

    def available(self, columns: Iterable[str]) -> List[Dimension]:
        """Dimensions that are actually present in a loaded table."""
        present = set(columns)
        return [d for d in self._dims.values() if d.id in present]

    def to_list(self) -> List[Dict[str, object]]:
        return [
            {"id": d.id, "label": d.label, "multi_valued": d.multi_valued}
            for d in self._dims.values()
        ]


__all__ = ["Dimension", "DimensionRegistry"]
