"""A procedurally generated tree that can be regenerated from new parameters."""

from __future__ import annotations

import logging
from typing import Protocol

import numpy as np

from grove3d.generation.fingerprint import ADDITIVE, ChangeDetector
from grove3d.generation.growth import BranchGrower, GrowthStats
from grove3d.generation.leaves import LeafPlacer
from grove3d.generation.mesh import MeshAssembler
from grove3d.materials import (
    BARK,
    GRASS,
    MATERIAL_COUNTS,
    IndexedMaterialResolver,
    MaterialResolver,
)
from grove3d.models.parameters import TreeParameters
from grove3d.models.records import FinishedMesh, LeafRecord, MaterialHandle
from grove3d.utils.geometry import make_ring_shape
from grove3d.utils.random_stream import RandomStream, default_stream

logger = logging.getLogger(__name__)


class MeshSink(Protocol):
    def __call__(self, mesh: FinishedMesh) -> object: ...


class TreeGenerator:
    """Owns the mesh buffers, leaf pool and fingerprint of one tree.

    Buffers and leaves are created by the first generation pass and reused by
    every later one. A pass borrows `stream` (the process-wide stream unless
    one is given) and restores its position before returning, so callers
    drawing from the same stream do not see the pass.

    Attributes:
    -----------
    params : TreeParameters
        parameters of the last generation pass
    mesh : FinishedMesh or None
        the finished mesh of the last generation pass
    bark_material, platform_material : MaterialHandle or None
        materials of the tree and of the grass platform it stands on
    """

    def __init__(
        self,
        params: TreeParameters | None = None,
        stream: RandomStream | None = None,
        resolver: MaterialResolver | None = None,
        sink: MeshSink | None = None,
        fingerprint: str = ADDITIVE,
        check_mesh: bool = False,
    ):
        self.params = params or TreeParameters()
        self.stream = stream or default_stream()
        self.resolver = resolver or IndexedMaterialResolver()
        self.sink = sink
        self.check_mesh = check_mesh

        self.assembler = MeshAssembler()
        self.leaves = LeafPlacer(self.resolver)
        self.changes = ChangeDetector(fingerprint)
        self.ring_shape: np.ndarray | None = None
        self.mesh: FinishedMesh | None = None
        self.stats: GrowthStats | None = None
        self.bark_material: MaterialHandle | None = None
        self.platform_material: MaterialHandle | None = None

    def update_tree(self, params: TreeParameters) -> bool:
        """Regenerates the tree if `params` differ from the last generated ones.

        Returns:
            bool: whether a generation pass ran
        """
        if not self.changes.has_changed(params, has_mesh=self.mesh is not None):
            logger.debug("Tree parameters unchanged, skipping regeneration")
            return False

        previous = self.params
        self.params = params
        try:
            self.generate()
        except Exception:
            self.params = previous
            raise
        # only a finished pass counts as generated
        self.changes.commit(params)
        return True

    def generate(self) -> FinishedMesh:
        """Runs a full generation pass with the current parameters."""
        p = self.params
        self.assembler.clear()
        self.leaves.clear_leaves()

        original_state = self.stream.snapshot()
        try:
            self.ring_shape = make_ring_shape(
                self.stream, p.seed, p.num_sides, p.branch_roundness
            )
            grower = BranchGrower(
                p, self.ring_shape, self.assembler, self.stream, leaves=self.leaves
            )
            self.stats = grower.grow()
        finally:
            self.stream.restore(original_state)

        self.mesh = self.assembler.finalize(check=self.check_mesh)
        logger.info(
            "Generated tree (seed %d): %d vertices, %d triangles, %d rings, "
            "%d forks, %d leaves",
            p.seed,
            self.mesh.num_vertices,
            self.mesh.num_triangles,
            self.stats.rings,
            self.stats.forks,
            self.leaves.leaf_count,
        )
        if self.sink is not None:
            self.sink(self.mesh)
        return self.mesh

    def active_leaves(self) -> list[LeafRecord]:
        return list(self.leaves.active_leaves())

    def assign_materials(self, platform: bool = True) -> MaterialHandle:
        """Draws a random bark material, and a grass material for the platform.

        Args:
            platform (bool): whether to also draw a platform material

        Returns:
            MaterialHandle: the new bark material
        """
        index = self.stream.integer(1, MATERIAL_COUNTS[BARK] + 1)
        self.bark_material = self.resolver.resolve(BARK, index)
        if platform:
            index = self.stream.integer(1, MATERIAL_COUNTS[GRASS] + 1)
            self.platform_material = self.resolver.resolve(GRASS, index)
        return self.bark_material
