"""Parameter fingerprints used to skip regenerations that change nothing."""

from __future__ import annotations

from grove3d.models.parameters import TreeParameters

ADDITIVE = "additive"
STRUCTURAL = "structural"


def additive_fingerprint(params: TreeParameters) -> float:
    """Sum of all parameters, with the seed reduced to its lower 16 bits.

    Distinct parameter sets can sum to the same value, e.g. swapping a unit
    between num_sides and max_leaves.
    """
    return (
        (params.seed & 0xFFFF)
        + params.num_sides
        + params.segment_length
        + params.trunk_radius
        + params.max_vertices
        + params.radius_step
        + params.branch_tip_radius
        + params.twist
        + params.branch_probability
        + params.branch_roundness
        + params.max_leaves
    )


def structural_fingerprint(params: TreeParameters) -> int:
    """Hash of every parameter in declaration order, sensitive to position and type."""
    return hash(tuple((type(value).__name__, value) for value in params.as_tuple()))


_STRATEGIES = {ADDITIVE: additive_fingerprint, STRUCTURAL: structural_fingerprint}


class ChangeDetector:
    """Remembers the fingerprint of the last generated parameter set."""

    def __init__(self, strategy: str = ADDITIVE):
        if strategy not in _STRATEGIES:
            raise ValueError(
                f"Unknown fingerprint strategy {strategy!r}, "
                f"expected one of {sorted(_STRATEGIES)}"
            )
        self.strategy = strategy
        self.last: float | int | None = None

    def fingerprint(self, params: TreeParameters) -> float | int:
        return _STRATEGIES[self.strategy](params)

    def has_changed(self, params: TreeParameters, has_mesh: bool) -> bool:
        """Whether `params` require a new generation pass."""
        return not has_mesh or self.fingerprint(params) != self.last

    def commit(self, params: TreeParameters) -> None:
        self.last = self.fingerprint(params)
