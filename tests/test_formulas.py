"""Tests for per-submission formula evaluation."""

from types import SimpleNamespace

import pytest

from rtp_indicators.errors import InvalidAnswerValue
from rtp_indicators.formulas import (
    ADEQUATE,
    INADEQUATE,
    PARTIAL,
    calc_percentage,
    grade_answer,
    parse_count,
    ratio_contribution,
    score_answer,
    sum_contribution,
    weighted_contribution,
)


def _submission(answers, entity_id="S1", submission_id="sub-1", category_id="partners-in-play"):
    return SimpleNamespace(
        submission_id=submission_id,
        entity_id=entity_id,
        category_id=category_id,
        answers=answers,
    )


def test_calc_percentage():
    assert calc_percentage(1, 3) == 33.33
    assert calc_percentage(0, 4) == 0.0
    assert calc_percentage(4, 4) == 100.0


def test_calc_percentage_zero_denominator_is_none():
    """No responses is no data, not 0%."""
    assert calc_percentage(0, 0) is None
    assert calc_percentage(0, None) is None


@pytest.mark.parametrize(
    "answer, grade",
    [
        ("Yes", ADEQUATE),
        ("available", ADEQUATE),
        ("Adequate", ADEQUATE),
        (True, ADEQUATE),
        (2, ADEQUATE),
        ("Partial", PARTIAL),
        ("Not functioning", PARTIAL),
        ("No", INADEQUATE),
        ("Not Available", INADEQUATE),
        ("Inadequate", INADEQUATE),
        (False, INADEQUATE),
        (0, INADEQUATE),
        (None, INADEQUATE),
        ("  ", INADEQUATE),
    ],
)
def test_grade_answer(registry, answer, grade):
    assert grade_answer(registry.get("furnitureAvailability"), "pupil_desks", answer) == grade


def test_open_water_source_any_source_is_available(registry):
    defn = registry.get("sanitationAvailability")
    assert grade_answer(defn, "water_source", "Borehole") == ADEQUATE
    assert grade_answer(defn, "water_source", "Rain harvesting") == ADEQUATE
    assert grade_answer(defn, "water_source", "Not Available") == INADEQUATE
    # not an open input: unknown labels stay inadequate
    assert grade_answer(defn, "toilet", "Borehole") == INADEQUATE


def test_score_answer_maps_frequency_labels(registry):
    defn = registry.get("learningEnvironments")
    assert score_answer(defn, "s", "friendly_tone", "Frequently") == 5.0
    assert score_answer(defn, "s", "friendly_tone", "Only boys") == 3.0
    assert score_answer(defn, "s", "friendly_tone", "Not at all") == 0.0
    assert score_answer(defn, "s", "pupil_participation", 4) == 4.0
    assert score_answer(defn, "s", "pupil_participation", "3.5") == 3.5


@pytest.mark.parametrize("value", [6, -1, "often", None, True])
def test_score_answer_rejects_bad_values(registry, value):
    """Out-of-range values are rejected, never clamped."""
    with pytest.raises(InvalidAnswerValue) as excinfo:
        score_answer(registry.get("learningEnvironments"), "sub-9", "pupil_participation", value)
    assert excinfo.value.submission_id == "sub-9"
    assert excinfo.value.question == "pupil_participation"


def test_parse_count():
    assert parse_count("s", "boys_enrolled", 120) == 120.0
    assert parse_count("s", "boys_enrolled", "45") == 45.0
    assert parse_count("s", "boys_enrolled", None) == 0.0
    with pytest.raises(InvalidAnswerValue, match="negative"):
        parse_count("s", "boys_enrolled", -3)
    with pytest.raises(InvalidAnswerValue, match="not a number"):
        parse_count("s", "boys_enrolled", "many")


def test_ratio_contribution_counts_items(registry):
    defn = registry.get("furnitureAvailability")
    contribution = ratio_contribution(
        defn,
        _submission(
            {"pupil_desks": "Available", "teacher_tables": "Partial"},
            category_id="consolidated-checklist",
        ),
    )
    assert contribution.numerator == 1.0
    assert contribution.denominator == 3.0
    assert dict(contribution.components) == {ADEQUATE: 1, PARTIAL: 1, INADEQUATE: 1}
    assert dict(contribution.answers)["teacher_chairs"] is None


def test_weighted_contribution_learning_environment(registry):
    """0.3 * 5 + 0.3 * 4 + 0.4 * 3 = 3.9"""
    defn = registry.get("learningEnvironments")
    contribution = weighted_contribution(
        defn,
        _submission(
            {"friendly_tone": "Frequently", "acknowledging_effort": "Sometimes", "pupil_participation": 3}
        ),
    )
    assert contribution.score == pytest.approx(3.9)
    assert contribution.denominator == 1.0
    assert contribution.components["meeting"] == 1


def test_weighted_contribution_missing_component_raises(registry):
    defn = registry.get("learningEnvironments")
    with pytest.raises(InvalidAnswerValue, match="missing"):
        weighted_contribution(defn, _submission({"friendly_tone": "Frequently"}))


def test_sum_contribution_components(registry):
    defn = registry.get("enrollment")
    contribution = sum_contribution(
        defn,
        _submission({"boys_enrolled": 200, "girls_enrolled": 220}, category_id="school-output"),
    )
    assert dict(contribution.components) == {"boys": 200.0, "girls": 220.0, "total": 420.0}
    assert contribution.numerator == 420.0


def test_non_mapping_answers_treated_as_empty(registry):
    defn = registry.get("enrollment")
    contribution = sum_contribution(defn, _submission(None, category_id="school-output"))
    assert contribution.numerator == 0.0
