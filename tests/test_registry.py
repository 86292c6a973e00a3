"""Tests for the indicator formula registry."""

import math

import pytest

from rtp_indicators.config import INDICATOR_REGISTRY
from rtp_indicators.errors import RegistryError, UnknownIndicator
from rtp_indicators.registry import FormulaKind, IndicatorRegistry, build_registry, make_definition


def test_default_registry_builds(registry):
    """Every entry of the static table validates."""
    assert len(registry) == len(INDICATOR_REGISTRY)
    assert registry.get("teacherAttendance").kind is FormulaKind.RATIO


def test_unknown_indicator_raises(registry):
    with pytest.raises(UnknownIndicator) as excinfo:
        registry.get("notAnIndicator")
    assert excinfo.value.key == "notAnIndicator"
    # also a KeyError, so mapping access behaves as expected
    with pytest.raises(KeyError):
        registry["notAnIndicator"]


def test_weighted_average_weights_sum_to_one(registry):
    """Weights of every registered weighted average sum to 1 within tolerance."""
    weighted = registry.of_kind(FormulaKind.WEIGHTED_AVERAGE)
    assert {d.key for d in weighted} == {"learningEnvironments", "teacherSkills"}
    for defn in weighted:
        assert abs(math.fsum(defn.weights) - 1.0) <= 1e-9
        assert len(defn.weights) == len(defn.inputs)


def test_learning_environment_weights(registry):
    defn = registry.get("learningEnvironments")
    assert defn.weights == (0.3, 0.3, 0.4)
    assert defn.threshold == 3.5
    assert defn.scale_max == 5.0
    assert defn.score_map_for("friendly_tone")["only girls"] == 3.0


def test_weights_not_summing_to_one_rejected():
    with pytest.raises(RegistryError, match="weights sum"):
        make_definition(
            "bad",
            {
                "kind": "weightedAverage",
                "family": "scored",
                "categories": ["partners-in-play"],
                "inputs": ["a", "b"],
                "weights": [0.5, 0.6],
                "threshold": 3.5,
                "scale_max": 5,
            },
        )


def test_threshold_outside_scale_rejected():
    with pytest.raises(RegistryError, match="threshold"):
        make_definition(
            "bad",
            {
                "kind": "weightedAverage",
                "family": "scored",
                "categories": ["partners-in-play"],
                "inputs": ["a"],
                "weights": [1.0],
                "threshold": 6,
                "scale_max": 5,
            },
        )


def test_unknown_category_rejected():
    with pytest.raises(RegistryError, match="unknown category"):
        make_definition(
            "bad",
            {"kind": "sum", "family": "count", "categories": ["nope"], "inputs": ["x"]},
        )


def test_invalid_kind_rejected():
    with pytest.raises(RegistryError, match="invalid or missing kind"):
        make_definition("bad", {"kind": "median", "categories": ["school-output"]})


def test_family_must_match_kind():
    with pytest.raises(RegistryError, match="family"):
        make_definition(
            "bad",
            {"kind": "sum", "family": "scored", "categories": ["school-output"], "inputs": ["x"]},
        )


def test_duplicate_keys_rejected():
    defn = make_definition(
        "enrollment",
        {"kind": "sum", "family": "count", "categories": ["school-output"], "inputs": ["x"]},
    )
    with pytest.raises(RegistryError, match="registered twice"):
        IndicatorRegistry([defn, defn])


def test_registries_are_independent():
    """A custom table builds its own registry without touching the default one."""
    custom = build_registry(
        {
            "boysOnly": {
                "kind": "sum",
                "family": "count",
                "categories": ["school-output"],
                "inputs": ["boys_enrolled"],
            }
        }
    )
    assert list(custom) == ["boysOnly"]
    assert "boysOnly" not in build_registry()


def test_definitions_are_immutable(registry):
    defn = registry.get("enrollment")
    with pytest.raises(AttributeError):
        defn.inputs = ("x",)
