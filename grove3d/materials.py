"""Material resolution for bark, leaves and the grass platform under a tree."""

from __future__ import annotations

from typing import Protocol

from grove3d.models.records import MaterialHandle

BARK = "bark"
LEAF = "leaf"
GRASS = "grass"

# number of materials available per category; indices start at 1
MATERIAL_COUNTS: dict[str, int] = {BARK: 18, LEAF: 14, GRASS: 11}

_NAME_PREFIXES = {BARK: "bark", LEAF: "leaves", GRASS: "grass"}


class MaterialResolver(Protocol):
    def resolve(self, category: str, index: int) -> MaterialHandle: ...


class IndexedMaterialResolver:
    """Resolves materials to handles named after their resource keys.

    Handles are cached, so resolving the same material twice returns the same
    handle object.
    """

    def __init__(self, counts: dict[str, int] | None = None):
        self.counts = dict(MATERIAL_COUNTS if counts is None else counts)
        self._cache: dict[tuple[str, int], MaterialHandle] = {}

    def resolve(self, category: str, index: int) -> MaterialHandle:
        if category not in self.counts:
            raise ValueError(
                f"Unknown material category {category!r}, "
                f"expected one of {sorted(self.counts)}"
            )
        if not 1 <= index <= self.counts[category]:
            raise ValueError(
                f"{category} material index must be in "
                f"[1, {self.counts[category]}], got {index}"
            )

        key = (category, index)
        if key not in self._cache:
            name = f"{_NAME_PREFIXES.get(category, category)}{index}"
            self._cache[key] = MaterialHandle(category=category, index=index, name=name)
        return self._cache[key]
