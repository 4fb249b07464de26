"""Branch growth: rings, connections, caps and forks of a tree mesh."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from grove3d.generation.leaves import LeafPlacer
from grove3d.generation.mesh import MeshAssembler
from grove3d.models.parameters import TreeParameters
from grove3d.utils.geometry import UP, ring_offsets, rotate_local
from grove3d.utils.random_stream import RandomStream

# a side branch deflects by 10 to 45 degrees about each axis
FORK_SPREAD = 70.0
FORK_MIN_ANGLE = 10.0

V_STEP = 0.0625


@dataclass(frozen=True)
class Segment:
    """A branch segment waiting to grow its ring."""

    position: np.ndarray
    orientation: np.ndarray
    previous_ring: int | None
    radius: float
    v: float


@dataclass(frozen=True)
class ForkCheck:
    """A pending decision on spawning a side branch from `parent_ring`."""

    position: np.ndarray
    orientation: np.ndarray
    parent_ring: int
    radius: float
    v: float


@dataclass
class GrowthStats:
    rings: int = 0
    caps: int = 0
    forks: int = 0


class BranchGrower:
    """Grows a tree, one ring of vertices at a time, from the base of its trunk.

    Growth is driven by a LIFO work list. When a segment continues its branch,
    the fork check for that segment is pushed first and the continuation on top
    of it, so the continuation's whole subtree (including its own forks) is
    drained before the fork check draws from the stream. This reproduces the
    draw order of growing branches recursively, depth first.

    Every branch shares the vertex budget through the length of `mesh`.
    Growth always terminates: the radius shrinks geometrically towards
    branch_tip_radius and the vertex count only ever increases.
    """

    def __init__(
        self,
        params: TreeParameters,
        ring_shape: np.ndarray,
        mesh: MeshAssembler,
        stream: RandomStream,
        leaves: LeafPlacer | None = None,
    ):
        self.params = params
        self.ring_shape = ring_shape
        self.mesh = mesh
        self.stream = stream
        self.leaves = leaves
        self.stats = GrowthStats()

    def _budget_allows_ring(self) -> bool:
        return len(self.mesh) + self.params.num_sides < self.params.max_vertices

    def grow(
        self,
        position: np.ndarray | None = None,
        orientation: np.ndarray | None = None,
    ) -> GrowthStats:
        """Grows the whole tree from a trunk base at `position`."""
        p = self.params
        start = Segment(
            position=np.zeros(3) if position is None else np.asarray(position, float),
            orientation=np.eye(3) if orientation is None else np.asarray(orientation),
            previous_ring=None,
            radius=p.trunk_radius,
            v=0.0,
        )
        work: list[Segment | ForkCheck] = [start]
        while work:
            task = work.pop()
            if isinstance(task, ForkCheck):
                fork = self._fork(task)
                if fork is not None:
                    work.append(fork)
                continue
            work.extend(self._grow_segment(task))
        return self.stats

    def _grow_segment(self, seg: Segment) -> list[Segment | ForkCheck]:
        p = self.params
        offsets = ring_offsets(self.ring_shape, seg.radius) @ seg.orientation.T
        ring = self.mesh.add_ring(seg.position + offsets, seg.v)
        self.stats.rings += 1
        if seg.previous_ring is not None:
            self.mesh.connect_rings(seg.previous_ring, ring, p.num_sides)

        radius = seg.radius * p.radius_step
        if radius < p.branch_tip_radius or not self._budget_allows_ring():
            self.mesh.add_cap(seg.position, ring, p.num_sides, seg.v)
            self.stats.caps += 1
            if self.leaves is not None:
                self.leaves.grow_leaf(seg.position, p.max_leaves, self.stream)
            return []

        v = seg.v + V_STEP * (p.segment_length + p.segment_length / radius)
        position = seg.position + seg.orientation @ (UP * p.segment_length)
        x = (self.stream.uniform() - 0.5) * p.twist
        z = (self.stream.uniform() - 0.5) * p.twist
        continuation = Segment(
            position=position,
            orientation=rotate_local(seg.orientation, x, z),
            previous_ring=ring,
            radius=radius,
            v=v,
        )
        check = ForkCheck(
            position=position,
            orientation=seg.orientation,
            parent_ring=ring,
            radius=radius,
            v=v,
        )
        # popped last to first: the continuation grows before the fork check
        return [check, continuation]

    def _fork_angle(self) -> float:
        angle = self.stream.uniform() * FORK_SPREAD - FORK_SPREAD / 2
        return angle + (FORK_MIN_ANGLE if angle > 0 else -FORK_MIN_ANGLE)

    def _fork(self, check: ForkCheck) -> Segment | None:
        if not self._budget_allows_ring():
            return None
        if not self.stream.uniform() < self.params.branch_probability:
            return None

        x = self._fork_angle()
        z = self._fork_angle()
        self.stats.forks += 1
        return Segment(
            position=check.position,
            orientation=rotate_local(check.orientation, x, z),
            previous_ring=check.parent_ring,
            radius=check.radius,
            v=check.v,
        )
