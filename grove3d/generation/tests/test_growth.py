import math

import numpy as np
import pytest

from grove3d.generation.growth import FORK_MIN_ANGLE, FORK_SPREAD, V_STEP, BranchGrower
from grove3d.generation.leaves import LeafPlacer
from grove3d.generation.mesh import MeshAssembler
from grove3d.models.parameters import TreeParameters
from grove3d.utils.geometry import UP, make_ring_shape, ring_offsets, rotate_local
from grove3d.utils.random_stream import RandomStream

TRUNK_ONLY = {
    "seed": 42,
    "num_sides": 6,
    "trunk_radius": 1.0,
    "radius_step": 0.9,
    "branch_tip_radius": 0.1,
    "branch_probability": 0.0,
    "segment_length": 0.5,
}

BUSHY = {
    "seed": 7,
    "max_vertices": 3000,
    "num_sides": 8,
    "trunk_radius": 1.0,
    "radius_step": 0.9,
    "branch_tip_radius": 0.05,
    "branch_probability": 0.25,
    "segment_length": 0.5,
    "twist": 20.0,
    "max_leaves": 2000,
}


def _grow(params: TreeParameters, leaves: LeafPlacer | None = None):
    stream = RandomStream()
    shape = make_ring_shape(
        stream, params.seed, params.num_sides, params.branch_roundness
    )
    mesh = MeshAssembler()
    grower = BranchGrower(params, shape, mesh, stream, leaves=leaves)
    stats = grower.grow()
    return mesh, stats


def test_unbranched_trunk_ring_count():
    params = TreeParameters.model_validate(TRUNK_ONLY)
    mesh, stats = _grow(params)

    rings = math.ceil(math.log(0.1) / math.log(0.9))
    assert rings == 22
    assert stats.rings == rings
    assert stats.caps == 1
    assert stats.forks == 0
    assert len(mesh) == rings * (params.num_sides + 1) + 1
    # side quads between consecutive rings plus the cap fan
    assert len(mesh.triangles) == (rings - 1) * params.num_sides * 2 + params.num_sides


def test_straight_trunk_without_twist():
    params = TreeParameters.model_validate(
        dict(TRUNK_ONLY, twist=0.0, branch_roundness=1.0)
    )
    mesh, stats = _grow(params)
    vertices, _uvs, _triangles = mesh.arrays()

    cap = vertices[-1]
    assert np.allclose(cap, (0.0, (stats.rings - 1) * params.segment_length, 0.0))
    # every ring is horizontal and centered on the y axis
    rings = vertices[:-1].reshape(stats.rings, params.num_sides + 1, 3)
    assert np.allclose(rings[:, :, 1].std(axis=1), 0.0)
    assert np.allclose(rings[:, :-1, [0, 2]].mean(axis=1), 0.0, atol=1e-9)


def test_rings_are_closed():
    params = TreeParameters.model_validate(dict(BUSHY, branch_roundness=0.0))
    mesh, stats = _grow(params)
    vertices, _uvs, _triangles = mesh.arrays()
    # the trunk base ring is the first num_sides + 1 vertices
    assert np.allclose(vertices[0], vertices[params.num_sides])


def test_radius_shrinks_along_trunk():
    params = TreeParameters.model_validate(
        dict(TRUNK_ONLY, twist=0.0, branch_roundness=1.0)
    )
    mesh, stats = _grow(params)
    vertices, _uvs, _triangles = mesh.arrays()
    rings = vertices[:-1].reshape(stats.rings, params.num_sides + 1, 3)
    radii = np.hypot(rings[:, 0, 0], rings[:, 0, 2])
    assert np.allclose(radii, 0.9 ** np.arange(stats.rings))


def test_v_coordinate_increases_along_branch():
    params = TreeParameters.model_validate(TRUNK_ONLY)
    mesh, stats = _grow(params)
    vs = [v for _u, v in mesh.uvs[:-1:params.num_sides + 1]]
    assert vs[0] == 0.0
    assert all(b > a for a, b in zip(vs, vs[1:]))


def test_forks_add_branches():
    params = TreeParameters.model_validate(BUSHY)
    mesh, stats = _grow(params)
    assert stats.forks > 0
    assert stats.caps == stats.forks + 1


def test_triangles_reference_valid_vertices():
    params = TreeParameters.model_validate(BUSHY)
    mesh, _stats = _grow(params)
    _vertices, uvs, triangles = mesh.arrays()
    assert len(uvs) == len(mesh)
    assert triangles.min() >= 0
    assert triangles.max() < len(mesh)


@pytest.mark.parametrize("max_vertices", [1, 20, 500, 1024, 3000])
def test_vertex_budget(max_vertices):
    params = TreeParameters.model_validate(
        dict(BUSHY, max_vertices=max_vertices, branch_probability=1.0)
    )
    mesh, _stats = _grow(params)
    assert len(mesh) <= max_vertices + params.num_sides + 2


def test_budget_stops_trunk_early():
    params = TreeParameters.model_validate(dict(TRUNK_ONLY, max_vertices=20))
    mesh, stats = _grow(params)
    assert stats.rings == 2
    assert len(mesh) == 15


def test_slow_shrinking_terminates_at_vertex_cap():
    params = TreeParameters.model_validate(
        {
            "seed": 3,
            "max_vertices": 2000,
            "num_sides": 8,
            "trunk_radius": 1.0,
            "radius_step": 0.99,
            "branch_tip_radius": 0.001,
            "branch_probability": 0.2,
        }
    )
    mesh, stats = _grow(params)
    assert len(mesh) <= params.max_vertices + params.num_sides + 2
    # the radius alone would allow far more rings than the vertex cap
    assert stats.rings < math.log(0.001) / math.log(0.99)


def test_growth_is_deterministic():
    params = TreeParameters.model_validate(BUSHY)
    a, _ = _grow(params)
    b, _ = _grow(params)
    for x, y in zip(a.arrays(), b.arrays()):
        assert np.array_equal(x, y)


def test_seed_changes_tree():
    a, _ = _grow(TreeParameters.model_validate(BUSHY))
    b, _ = _grow(TreeParameters.model_validate(dict(BUSHY, seed=8)))
    assert len(a) != len(b) or not np.array_equal(a.arrays()[0], b.arrays()[0])


def test_leaf_at_every_tip_within_budget():
    params = TreeParameters.model_validate(BUSHY)
    leaves = LeafPlacer()
    mesh, stats = _grow(params, leaves)
    assert leaves.leaf_count == min(stats.caps, params.max_leaves)

    tips = {tuple(v) for v in mesh.arrays()[0]}
    assert all(tuple(leaf.position) in tips for leaf in leaves.active_leaves())


def test_leaf_budget_caps_active_leaves():
    params = TreeParameters.model_validate(
        dict(BUSHY, max_leaves=3, branch_probability=0.5)
    )
    leaves = LeafPlacer()
    _mesh, stats = _grow(params, leaves)
    assert stats.caps > 3
    assert len(list(leaves.active_leaves())) == 3


def _grow_recursively(params: TreeParameters, leaves: LeafPlacer):
    """Depth-first growth: a branch's continuation finishes before its fork test."""
    stream = RandomStream()
    shape = make_ring_shape(
        stream, params.seed, params.num_sides, params.branch_roundness
    )
    mesh = MeshAssembler()
    length = params.segment_length

    def budget_left():
        return len(mesh) + params.num_sides < params.max_vertices

    def fork_angle():
        angle = stream.uniform() * FORK_SPREAD - FORK_SPREAD / 2
        return angle + (FORK_MIN_ANGLE if angle > 0 else -FORK_MIN_ANGLE)

    def branch(position, orientation, previous, radius, v):
        offsets = ring_offsets(shape, radius) @ orientation.T
        ring = mesh.add_ring(position + offsets, v)
        if previous is not None:
            mesh.connect_rings(previous, ring, params.num_sides)

        radius = radius * params.radius_step
        if radius < params.branch_tip_radius or not budget_left():
            mesh.add_cap(position, ring, params.num_sides, v)
            leaves.grow_leaf(position, params.max_leaves, stream)
            return

        v = v + V_STEP * (length + length / radius)
        position = position + orientation @ (UP * length)
        x = (stream.uniform() - 0.5) * params.twist
        z = (stream.uniform() - 0.5) * params.twist
        branch(position, rotate_local(orientation, x, z), ring, radius, v)

        if budget_left() and stream.uniform() < params.branch_probability:
            x = fork_angle()
            z = fork_angle()
            branch(position, rotate_local(orientation, x, z), ring, radius, v)

    branch(np.zeros(3), np.eye(3), None, params.trunk_radius, 0.0)
    return mesh


@pytest.mark.parametrize("seed", [1, 7, 99])
def test_matches_depth_first_recursion(seed):
    params = TreeParameters.model_validate(dict(BUSHY, seed=seed, max_leaves=15))
    leaves = LeafPlacer()
    mesh, stats = _grow(params, leaves)
    expected_leaves = LeafPlacer()
    expected_mesh = _grow_recursively(params, expected_leaves)

    assert stats.forks > 0
    for actual, expected in zip(mesh.arrays(), expected_mesh.arrays()):
        assert np.array_equal(actual, expected)

    assert len(leaves) == len(expected_leaves)
    for leaf, expected in zip(leaves.pool, expected_leaves.pool):
        assert np.array_equal(leaf.position, expected.position)
        assert np.array_equal(leaf.orientation, expected.orientation)
    assert leaves.material == expected_leaves.material
