"""Bounded, reusable pool of leaves placed at branch tips."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator

import numpy as np

from grove3d.materials import (
    LEAF,
    MATERIAL_COUNTS,
    IndexedMaterialResolver,
    MaterialResolver,
)
from grove3d.models.records import LeafRecord, MaterialHandle
from grove3d.utils.geometry import make_leaf_quad, quaternion_from_draws
from grove3d.utils.random_stream import RandomStream

logger = logging.getLogger(__name__)


class LeafPlacer:
    """Places leaves from a pool that survives regenerations of its tree.

    The pool grows until it holds `max_leaves` records. After that, leaves are
    not allocated anymore: `clear_leaves` deactivates the whole pool ahead of a
    regeneration and `grow_leaf` reactivates records in pool order.
    """

    def __init__(self, resolver: MaterialResolver | None = None):
        self.resolver = resolver or IndexedMaterialResolver()
        self.pool: list[LeafRecord] = []
        self.material: MaterialHandle | None = None
        self.leaf_count = 0
        self._free: deque[int] = deque()

    def __len__(self) -> int:
        return len(self.pool)

    def clear_leaves(self) -> None:
        """Deactivates every pooled leaf and resets the count for the next pass."""
        for leaf in self.pool:
            leaf.active = False
        self._free = deque(range(len(self.pool)))
        self.leaf_count = 0

    def active_leaves(self) -> Iterator[LeafRecord]:
        return (leaf for leaf in self.pool if leaf.active)

    def grow_leaf(
        self, position: np.ndarray, max_leaves: int, stream: RandomStream
    ) -> LeafRecord | None:
        """Places a leaf at `position`, unless this pass has used its budget.

        Args:
            position (np.ndarray): where the leaf grows, usually a branch tip
            max_leaves (int): leaf budget of the pass and capacity of the pool
            stream (RandomStream): source of the leaf orientation and material

        Returns:
            LeafRecord | None: the placed leaf, or None if none was available
        """
        if self.leaf_count >= max_leaves:
            return None

        position = np.array(position, dtype=float)
        # new and reused leaves consume the same draws
        orientation = quaternion_from_draws(stream)
        if len(self.pool) < max_leaves:
            leaf = LeafRecord(
                position=position,
                orientation=orientation,
                quad=make_leaf_quad(1, 1),
                name=f"Leaf_{len(self.pool):04X}",
            )
            self.pool.append(leaf)
        elif self._free:
            leaf = self.pool[self._free.popleft()]
            leaf.active = True
            leaf.position = position
            leaf.orientation = orientation
            logger.debug("Reused %s at %s", leaf.name, position)
        else:
            leaf = None

        # the first leaf of a pass picks the material shared by all of them
        if self.leaf_count == 0:
            index = stream.integer(1, MATERIAL_COUNTS[LEAF] + 1)
            self.material = self.resolver.resolve(LEAF, index)
        if leaf is not None:
            leaf.material = self.material

        self.leaf_count += 1
        return leaf
