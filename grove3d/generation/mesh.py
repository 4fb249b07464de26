"""Growing vertex/UV/triangle buffers of a tree mesh."""

from __future__ import annotations

import numpy as np

from grove3d.models.records import FinishedMesh
from grove3d.utils.geometry import compute_bounds, compute_vertex_normals
from grove3d.utils.mesh_checks import compute_vertex_normals_checked


class MeshAssembler:
    """Owns the mesh buffers a generation pass appends to.

    The number of vertices in the buffers is the vertex budget shared by every
    branch of the tree: a branch checks `len(assembler)` before it commits to
    another ring.
    """

    def __init__(self):
        self.vertices: list[np.ndarray] = []
        self.uvs: list[tuple[float, float]] = []
        self.triangles: list[tuple[int, int, int]] = []

    def __len__(self) -> int:
        return len(self.vertices)

    def clear(self) -> None:
        """Empties all buffers, keeping the list objects for reuse."""
        self.vertices.clear()
        self.uvs.clear()
        self.triangles.clear()

    def add_ring(self, points: np.ndarray, v: float) -> int:
        """Appends one ring of vertices and returns the index of its first vertex.

        U steps evenly from 0 to 1 across the ring, V is fixed.
        """
        base = len(self.vertices)
        step_u = 1.0 / (len(points) - 1)
        for n, point in enumerate(points):
            self.vertices.append(point)
            self.uvs.append((n * step_u, v))
        return base

    def connect_rings(self, previous: int, current: int, num_sides: int) -> None:
        """Adds two triangles per side between two rings."""
        for n in range(num_sides):
            p, c = previous + n, current + n
            self.triangles.append((p + 1, p, c))
            self.triangles.append((c, c + 1, p + 1))

    def add_cap(self, position: np.ndarray, ring: int, num_sides: int, v: float) -> int:
        """Closes the open end of a branch with a fan around a center vertex."""
        cap = len(self.vertices)
        self.vertices.append(np.asarray(position, dtype=float))
        # U of the cap continues one step past the end of the ring, offset by one
        self.uvs.append(((num_sides + 1) / num_sides + 1.0, v + 1.0))
        for n in range(ring, ring + num_sides):
            self.triangles.append((n, cap, n + 1))
        return cap

    def arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Buffers as (vertices, uvs, triangles) arrays."""
        vertices = np.array(self.vertices, dtype=float).reshape(-1, 3)
        uvs = np.array(self.uvs, dtype=float).reshape(-1, 2)
        triangles = np.array(self.triangles, dtype=np.int32).reshape(-1, 3)
        return vertices, uvs, triangles

    def finalize(self, check: bool = False) -> FinishedMesh:
        """Computes normals and bounds and freezes the buffers into a mesh.

        Args:
            check (bool): validate vertices, UVs and triangle indices with
                checkify before computing normals; raises on failure

        Returns:
            FinishedMesh: the mesh ready for a mesh sink
        """
        vertices, uvs, triangles = self.arrays()
        if check and len(vertices) and len(triangles):
            err, normals = compute_vertex_normals_checked(
                vertices=vertices, uvs=uvs, triangles=triangles
            )
            err.throw()
            normals = np.asarray(normals)
        else:
            normals = compute_vertex_normals(vertices, triangles)
        return FinishedMesh(
            vertices=vertices,
            uvs=uvs,
            triangles=triangles,
            normals=normals,
            bounds=compute_bounds(vertices),
        )
