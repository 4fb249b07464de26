"""Functions for creating the 3D geometry of procedural trees."""

from __future__ import annotations

from collections.abc import Iterable

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from grove3d.models.records import LeafQuad, LeafRecord, MeshBounds
from grove3d.utils.random_stream import RandomStream

UP = np.array((0.0, 1.0, 0.0))
MIN_BUCKET = 64


def make_ring_shape(
    stream: RandomStream, seed: int, num_sides: int, branch_roundness: float
) -> np.ndarray:
    """Derives the cross-section profile shared by every ring of a tree.

    The stream is reseeded with `seed` and `num_sides` values are drawn from it;
    growth draws continue from wherever this leaves the stream.

    Parameters
    -----------
    stream : RandomStream
        source of the random draws
    seed : int
        seed of the generation pass
    num_sides : int
        number of sides of each ring
    branch_roundness : numeric
        1.0 produces perfectly circular rings, 0.0 the most irregular ones

    Returns:
    --------
    shape : numpy array with shape (num_sides + 1,)
        radius multipliers for each side of a ring; the last element repeats
        the first one to close the ring
    """
    k = (1 - branch_roundness) * 0.5
    stream.reseed(seed)
    shape = np.empty(num_sides + 1)
    for n in range(num_sides):
        shape[n] = 1 - (stream.uniform() - 0.5) * k
    shape[num_sides] = shape[0]
    return shape


def rot_x(angle: float) -> np.ndarray:
    """Rotation matrix about the x axis, `angle` in degrees."""
    c, s = np.cos(np.deg2rad(angle)), np.sin(np.deg2rad(angle))
    return np.array(((1, 0, 0), (0, c, -s), (0, s, c)), dtype=float)


def rot_z(angle: float) -> np.ndarray:
    """Rotation matrix about the z axis, `angle` in degrees."""
    c, s = np.cos(np.deg2rad(angle)), np.sin(np.deg2rad(angle))
    return np.array(((c, -s, 0), (s, c, 0), (0, 0, 1)), dtype=float)


def rotate_local(orientation: np.ndarray, x: float, z: float) -> np.ndarray:
    """Applies rotations about the local x and z axes of `orientation`."""
    return orientation @ rot_x(x) @ rot_z(z)


def ring_offsets(shape: np.ndarray, radius: float) -> np.ndarray:
    """Offsets of a ring's vertices from its center, in the branch's local frame.

    The ring lies in the local xz plane; the branch grows along local y.

    Returns:
    --------
    offsets : numpy array with shape (len(shape), 3)
    """
    num_sides = len(shape) - 1
    angles = 2 * np.pi / num_sides * np.arange(num_sides + 1)
    r = shape * radius
    return np.column_stack((r * np.cos(angles), np.zeros_like(r), r * np.sin(angles)))


def quaternion_from_draws(stream: RandomStream) -> np.ndarray:
    """Builds a random unit quaternion (x, y, z, w) from four uniform draws."""
    q = np.array([stream.uniform() for _ in range(4)])
    norm = np.linalg.norm(q)
    if norm == 0:
        return np.array((0.0, 0.0, 0.0, 1.0))
    return q / norm


def quaternion_matrix(q: ArrayLike) -> np.ndarray:
    """Rotation matrix of a unit quaternion given as (x, y, z, w)."""
    x, y, z, w = np.asarray(q, dtype=float)
    return np.array(
        (
            (1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)),
            (2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)),
            (2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)),
        )
    )


def merge_leaf_quads(
    leaves: Iterable[LeafRecord], scale: float = 1.0
) -> tuple[np.ndarray, np.ndarray]:
    """Places each leaf's quad in world space and batches them into one mesh.

    Parameters
    -----------
    leaves : iterable of LeafRecord
        the leaves to place, typically the active leaves of a tree
    scale : numeric
        uniform scale applied to every quad before it is rotated

    Returns:
    --------
    vertices, triangles : numpy arrays with shapes (4 * N, 3) and (2 * N, 3)
    """
    verts_list = []
    faces_list = []
    offset = 0
    for leaf in leaves:
        rotation = quaternion_matrix(leaf.orientation)
        verts_list.append(leaf.quad.vertices * scale @ rotation.T + leaf.position)
        faces_list.append(leaf.quad.triangles + offset)
        offset += len(leaf.quad.vertices)

    if not verts_list:
        return np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int32)
    return np.vstack(verts_list), np.vstack(faces_list).astype(np.int32)


def make_leaf_quad(width: float = 1.0, height: float = 1.0) -> LeafQuad:
    """Creates the plane a leaf is rendered on."""
    vertices = np.array(
        (
            (-width, -height, 0.01),
            (width, -height, 0.01),
            (width, height, 0.01),
            (-width, height, 0.01),
        )
    )
    uvs = np.array(((0, 0), (0, 1), (1, 1), (1, 0)), dtype=float)
    triangles = np.array(((0, 1, 2), (0, 2, 3)), dtype=np.int32)
    return LeafQuad(vertices=vertices, uvs=uvs, triangles=triangles)


def _face_normals(vertices: ArrayLike, triangles: ArrayLike) -> Array:
    """Unit normals of each triangle, shape (T, 3)."""
    vertices = jnp.asarray(vertices)
    triangles = jnp.asarray(triangles)
    v0 = vertices[triangles[:, 0]]
    v1 = vertices[triangles[:, 1]]
    v2 = vertices[triangles[:, 2]]
    normals = jnp.cross(v1 - v0, v2 - v0)
    lengths = jnp.linalg.norm(normals, axis=1, keepdims=True)
    # zero-area triangles contribute nothing
    return jnp.where(lengths > 0, normals / jnp.where(lengths > 0, lengths, 1.0), 0.0)


@jax.jit
def _vertex_normals(vertices: ArrayLike, triangles: ArrayLike) -> Array:
    vertices = jnp.asarray(vertices)
    triangles = jnp.asarray(triangles)
    face_normals = _face_normals(vertices, triangles)

    summed = jnp.zeros_like(vertices)
    for corner in range(3):
        summed = summed.at[triangles[:, corner]].add(face_normals)

    lengths = jnp.linalg.norm(summed, axis=1, keepdims=True)
    return jnp.where(lengths > 0, summed / jnp.where(lengths > 0, lengths, 1.0), 0.0)


def _bucket_size(n: int) -> int:
    """Smallest power of two holding `n` items, at least MIN_BUCKET."""
    return max(MIN_BUCKET, 1 << (n - 1).bit_length())


def _bucketed_vertex_normals(vertices: ArrayLike, triangles: ArrayLike) -> Array:
    """Runs `_vertex_normals` on inputs padded to power-of-two sizes.

    Meshes whose vertex and triangle counts fall in the same buckets share one
    compiled `_vertex_normals`. Padded triangles all point at a zero vertex
    past the real ones, so they have no area and add nothing to any normal.
    """
    vertices = jnp.asarray(vertices)
    triangles = jnp.asarray(triangles)
    num_vertices = vertices.shape[0]
    num_triangles = triangles.shape[0]

    vertex_pad = _bucket_size(num_vertices + 1) - num_vertices
    triangle_pad = _bucket_size(num_triangles) - num_triangles
    vertices = jnp.pad(vertices, ((0, vertex_pad), (0, 0)))
    triangles = jnp.pad(triangles, ((0, triangle_pad), (0, 0)), constant_values=num_vertices)
    return _vertex_normals(vertices, triangles)[:num_vertices]


def compute_vertex_normals(vertices: ArrayLike, triangles: ArrayLike) -> np.ndarray:
    """Calculates per-vertex normals from the faces around each vertex.

    Each vertex normal is the normalized sum of the unit normals of the
    triangles that use the vertex. Vertices not used by any triangle get a zero
    normal.

    Parameters
    ----------
    vertices : array with shape (V, 3)
    triangles : integer array with shape (T, 3)

    Returns
    -------
    normals : numpy.ndarray, shape (V, 3)
    """
    vertices = np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
    triangles = np.asarray(triangles, dtype=np.int32).reshape(-1, 3)
    if len(vertices) == 0:
        return np.zeros((0, 3), dtype=np.float32)
    if len(triangles) == 0:
        return np.zeros_like(vertices)
    return np.asarray(_bucketed_vertex_normals(vertices, triangles))


def compute_bounds(vertices: ArrayLike) -> MeshBounds:
    """Calculates the axis-aligned bounding box of a set of vertices.

    The box is computed at the precision of the vertices, so it contains every
    one of them. An empty vertex set has a degenerate box at the origin.
    """
    vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
    if vertices.shape[0] == 0:
        return MeshBounds(minimum=np.zeros(3), maximum=np.zeros(3))
    return MeshBounds(minimum=vertices.min(axis=0), maximum=vertices.max(axis=0))
