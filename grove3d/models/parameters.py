from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from grove3d.utils.random_stream import RandomStream

# (min, max) slider ranges offered by the interactive control panel
PARAMETER_RANGES: dict[str, tuple[float, float]] = {
    "max_vertices": (1024, 65000),
    "num_sides": (3, 32),
    "max_leaves": (0, 2000),
    "trunk_radius": (0.25, 4.0),
    "radius_step": (0.82, 0.95),
    "branch_tip_radius": (0.01, 0.1),
    "branch_roundness": (0.0, 1.0),
    "segment_length": (0.35, 0.75),
    "twist": (0.0, 40.0),
    "branch_probability": (0.065, 0.25),
}

SEED_RANGE = (0, 65536)

INTEGER_FIELDS = ("max_vertices", "num_sides", "max_leaves")


class TreeParameters(BaseModel):
    """Immutable parameter set for a single tree generation pass.

    Attributes:
    -----------
    seed : int
        random seed on which the procedural generation is based
    max_vertices : int
        maximum vertices making up the tree mesh
    num_sides : int
        number of sides of each branch ring
    trunk_radius : numeric
        radius of the tree trunk, in meters
    radius_step : numeric
        factor the radius is multiplied by at every ring; controls how quickly
        branches thin out towards branch_tip_radius
    branch_tip_radius : numeric
        minimum radius for the tips of the smallest branches; must be smaller
        than trunk_radius
    branch_roundness : numeric
        roundness of the branch cross-section, 1.0 producing circular rings
        and 0.0 the most irregular ones
    segment_length : numeric
        length of each branch segment
    twist : numeric
        maximum random rotation, in degrees, applied between segments
    branch_probability : numeric
        probability of spawning a side branch at each segment
    max_leaves : int
        maximum number of leaves placed on the tree
    """

    model_config = ConfigDict(frozen=True)

    seed: int = 0
    max_vertices: int = Field(default=65000, gt=0)
    num_sides: int = Field(default=16, ge=3)
    trunk_radius: float = Field(default=2.0, gt=0)
    radius_step: float = Field(default=0.9, gt=0, lt=1)
    branch_tip_radius: float = Field(default=0.02, gt=0)
    branch_roundness: float = Field(default=0.8, ge=0, le=1)
    segment_length: float = Field(default=0.5, gt=0)
    twist: float = Field(default=20.0, ge=0)
    branch_probability: float = Field(default=0.1, ge=0, le=1)
    max_leaves: int = Field(default=2000, ge=0)

    @model_validator(mode="after")
    def tip_smaller_than_trunk(self):
        """Branches must be able to shrink from the trunk down to their tips."""
        if self.branch_tip_radius >= self.trunk_radius:
            raise ValueError(
                f"branch_tip_radius ({self.branch_tip_radius}) must be smaller "
                f"than trunk_radius ({self.trunk_radius})"
            )
        return self

    def as_tuple(self) -> tuple:
        """Field values in declaration order."""
        return tuple(getattr(self, name) for name in type(self).model_fields)


def random_tree_parameters(stream: RandomStream) -> TreeParameters:
    """Draws an entirely random tree from the control panel ranges.

    Args:
        stream (RandomStream): source of the random draws

    Returns:
        TreeParameters: a new parameter set with a random seed
    """
    values: dict[str, float | int] = {"seed": stream.integer(*SEED_RANGE)}
    for name, (low, high) in PARAMETER_RANGES.items():
        if name in INTEGER_FIELDS:
            values[name] = stream.integer(int(low), int(high))
        else:
            values[name] = stream.range(low, high)
    return TreeParameters.model_validate(values)


def with_random_seed(params: TreeParameters, stream: RandomStream) -> TreeParameters:
    """Keeps every parameter but the seed, which is redrawn."""
    return params.model_copy(update={"seed": stream.integer(*SEED_RANGE)})
