from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from jax import tree_util
from jax.typing import ArrayLike


@dataclass(frozen=True)
class MaterialHandle:
    """A renderable material, identified by its category and index.

    The name is the resource key the material was resolved from, e.g. "bark7".
    """

    category: str
    index: int
    name: str


@dataclass(frozen=True)
class LeafQuad:
    """Geometry of a single leaf billboard: 4 vertices and 2 triangles."""

    vertices: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray


@dataclass
class LeafRecord:
    """A pooled leaf placement.

    Records are never removed from their pool; a regeneration deactivates them
    and the next pass repositions and reactivates as many as it needs.
    """

    position: np.ndarray
    orientation: np.ndarray
    quad: LeafQuad
    material: MaterialHandle | None = None
    active: bool = True
    name: str = field(default="")


@tree_util.register_dataclass
@dataclass(frozen=True)
class MeshBounds:
    """Axis-aligned bounding box of a mesh (PyTree-friendly)."""

    minimum: ArrayLike
    maximum: ArrayLike

    @property
    def center(self) -> np.ndarray:
        return (np.asarray(self.minimum) + np.asarray(self.maximum)) / 2

    @property
    def size(self) -> np.ndarray:
        return np.asarray(self.maximum) - np.asarray(self.minimum)

    @property
    def extents(self) -> np.ndarray:
        return self.size / 2


@tree_util.register_dataclass
@dataclass(frozen=True)
class FinishedMesh:
    """Finalized tree mesh handed to a mesh sink.

    Fields
    ------
    vertices : shape (V, 3)
    uvs : shape (V, 2)
    triangles : shape (T, 3), indices into vertices
    normals : shape (V, 3), unit length for every vertex used by a triangle
    bounds : MeshBounds over all vertices
    """

    vertices: ArrayLike
    uvs: ArrayLike
    triangles: ArrayLike
    normals: ArrayLike
    bounds: MeshBounds

    @property
    def num_vertices(self) -> int:
        return int(np.shape(self.vertices)[0])

    @property
    def num_triangles(self) -> int:
        return int(np.shape(self.triangles)[0])
