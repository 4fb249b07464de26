"""JAX-friendly validation utilities for finalized tree meshes.

This module holds checkify-based 'fail fast' wrappers around the normal
computation without cluttering the core geometry implementation.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.experimental import checkify
from jax.typing import ArrayLike

from grove3d.utils.geometry import _bucketed_vertex_normals


def compute_vertex_normals_checked(
    *, vertices: ArrayLike, uvs: ArrayLike, triangles: ArrayLike
) -> tuple[checkify.Error, Array]:
    """Checks a mesh for consistency while computing its vertex normals.

    `jnp` scatter and gather ops clamp or drop out-of-range indices instead of
    raising, so a triangle referencing a missing vertex would silently produce
    a wrong normal. This wraps the normal computation in `checkify.checkify`
    and asserts the mesh invariants first.

    Returns
    -------
    err : checkify.Error
        A checkify error object (call `err.throw()` in Python to raise).
    normals : jax.Array, shape (V, 3)
        Per-vertex normals.
    """

    # NOTE: checks MUST be inside the function passed to `checkify.checkify`.
    def _checked_impl(*, vertices: ArrayLike, uvs: ArrayLike, triangles: ArrayLike):
        vertices_array = jnp.asarray(vertices, dtype=jnp.float32)
        uvs_array = jnp.asarray(uvs, dtype=jnp.float32)
        triangles_array = jnp.asarray(triangles, dtype=jnp.int32)
        num_vertices = vertices_array.shape[0]

        checkify.check(
            jnp.all(jnp.isfinite(vertices_array)),
            "vertices must be finite (no NaN/inf).",
        )
        checkify.check(
            jnp.all(jnp.isfinite(uvs_array)),
            "uvs must be finite (no NaN/inf).",
        )
        # shapes are static, so a UV/vertex count mismatch is a plain Python check
        checkify.check(
            jnp.asarray(uvs_array.shape[0] == num_vertices),
            "uvs must have one entry per vertex.",
        )
        checkify.check(
            jnp.all((triangles_array >= 0) & (triangles_array < num_vertices)),
            "triangles must reference existing vertices.",
        )
        return _bucketed_vertex_normals(vertices_array, triangles_array)

    checked = checkify.checkify(
        _checked_impl,
        errors=checkify.user_checks,
    )
    return checked(vertices=vertices, uvs=uvs, triangles=triangles)
