import pytest

from grove3d.generation.fingerprint import (
    ADDITIVE,
    STRUCTURAL,
    ChangeDetector,
    additive_fingerprint,
    structural_fingerprint,
)
from grove3d.models.parameters import TreeParameters

# binary fractions only, so the additive sums are exact
EXACT = {
    "seed": 3,
    "max_vertices": 1024,
    "num_sides": 6,
    "trunk_radius": 1.0,
    "radius_step": 0.5,
    "branch_tip_radius": 0.25,
    "branch_roundness": 0.5,
    "segment_length": 0.5,
    "twist": 20.0,
    "branch_probability": 0.5,
    "max_leaves": 10,
}

# one side more and one leaf less
SWAPPED = dict(EXACT, num_sides=7, max_leaves=9)


def test_additive_fingerprint_value():
    params = TreeParameters.model_validate(EXACT)
    assert additive_fingerprint(params) == 3 + 1024 + 6 + 1 + 0.5 * 4 + 0.25 + 20 + 10


def test_additive_fingerprint_ignores_high_seed_bits():
    low = TreeParameters.model_validate(EXACT)
    high = TreeParameters.model_validate(dict(EXACT, seed=EXACT["seed"] + 0x10000))
    assert additive_fingerprint(low) == additive_fingerprint(high)


def test_additive_fingerprint_collides_on_swapped_values():
    a = TreeParameters.model_validate(EXACT)
    b = TreeParameters.model_validate(SWAPPED)
    assert additive_fingerprint(a) == additive_fingerprint(b)
    assert structural_fingerprint(a) != structural_fingerprint(b)


def test_structural_fingerprint_stable_for_equal_parameters():
    a = TreeParameters.model_validate(EXACT)
    b = TreeParameters.model_validate(dict(EXACT))
    assert structural_fingerprint(a) == structural_fingerprint(b)


def test_change_detector_requires_mesh():
    detector = ChangeDetector()
    params = TreeParameters.model_validate(EXACT)
    detector.commit(params)
    assert not detector.has_changed(params, has_mesh=True)
    assert detector.has_changed(params, has_mesh=False)


def test_change_detector_before_first_commit():
    assert ChangeDetector().has_changed(TreeParameters(), has_mesh=True)


@pytest.mark.parametrize("strategy, changed", [(ADDITIVE, False), (STRUCTURAL, True)])
def test_change_detector_strategies(strategy, changed):
    detector = ChangeDetector(strategy)
    detector.commit(TreeParameters.model_validate(EXACT))
    swapped = TreeParameters.model_validate(SWAPPED)
    assert detector.has_changed(swapped, has_mesh=True) is changed


def test_change_detector_rejects_unknown_strategy():
    with pytest.raises(ValueError):
        ChangeDetector("md5")
