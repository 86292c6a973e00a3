"""Tests for the bottom-up aggregator."""

import pytest

from rtp_indicators.aggregator import Aggregator
from rtp_indicators.config import TEACHER_SKILL_QUESTIONS
from rtp_indicators.errors import EntityNotFound, IndicatorDataError, UnknownIndicator
from rtp_indicators.hierarchy import Entity, EntityTree
from rtp_indicators.status import Status

SCHOOLS = ["S1", "S2", "S3"]


def _attendance(*answers, entity_id="S1", itinerary_id="IT1"):
    return [(entity_id, "school-output", {"teacher_attendance": a}, itinerary_id) for a in answers]


def _skills(entity_id, ratings):
    return (entity_id, "partners-in-play", dict(zip(TEACHER_SKILL_QUESTIONS, ratings)))


def _environment(entity_id, tone, effort, participation):
    return (
        entity_id,
        "partners-in-play",
        {"friendly_tone": tone, "acknowledging_effort": effort, "pupil_participation": participation},
    )


@pytest.fixture
def mixed_submissions(make_submissions):
    """Attendance, enrollment and checklist submissions spread over three schools."""
    return make_submissions(
        [
            ("S1", "school-output", {"teacher_attendance": "Yes", "boys_enrolled": 120, "girls_enrolled": 130}),
            ("S1", "school-output", {"teacher_attendance": "No"}),
            ("S3", "school-output", {"teacher_attendance": "No", "boys_enrolled": 80, "girls_enrolled": 90}),
        ]
        + _attendance("Yes", "Yes", "Yes", entity_id="S2")
        + [
            ("S1", "consolidated-checklist", {"pupil_desks": "Available"}),
            ("S1", "partners-in-play", {}),
            ("S3", "consolidated-checklist", {"pupil_desks": "Partial"}),
            ("D1", "district-output", {"team_members_trained_male": 4, "team_members_trained_female": 5}),
        ]
    )


# ---------------------------------------------------------------------------
# Worked scenarios
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "answers, expected",
    [
        (("No", "No", "No"), 0.0),
        (("Yes", "Yes"), 100.0),
        (("Yes", "No", "No"), 33.33),
    ],
)
def test_teacher_attendance_percentages(registry, tree, make_submissions, answers, expected):
    agg = Aggregator(registry, tree, make_submissions(_attendance(*answers)))
    result = agg.compute_result("IT1", "teacherAttendance", "S1")
    assert result.percentage == expected
    assert result.value == expected
    assert result.denominator == len(answers)
    assert result.status is Status.REPORTED


def test_circuit_pools_two_schools(registry, tree, make_submissions):
    """Two No answers at one school and one Yes at another give the circuit 1/3."""
    submissions = make_submissions(_attendance("No", "No", entity_id="S1") + _attendance("Yes", entity_id="S2"))
    results = Aggregator(registry, tree, submissions).compute("IT1", "teacherAttendance", "C1")
    assert results["S1"].percentage == 0.0
    assert results["S2"].percentage == 100.0
    assert results["C1"].numerator == 1
    assert results["C1"].denominator == 3
    assert results["C1"].percentage == 33.33


def test_teacher_skills_meets_standard(registry, tree, make_submissions):
    """Ratings averaging 3.6 meet the 3.5 standard."""
    ratings = [4, 4, 4, 4, 4, 4, 3, 3, 3, 3]
    agg = Aggregator(registry, tree, make_submissions([_skills("S1", ratings)]))
    result = agg.compute_result("IT1", "teacherSkills", "S1")
    assert result.value == 3.6
    assert result.status is Status.MEETS_STANDARD
    assert result.percentage == 100.0


def test_enrollment_components(registry, tree, make_submissions):
    submissions = make_submissions(
        [("S1", "school-output", {"boys_enrolled": 200, "girls_enrolled": 220})]
    )
    result = Aggregator(registry, tree, submissions).compute_result("IT1", "enrollment", "S1")
    assert dict(result.components) == {"boys": 200.0, "girls": 220.0, "total": 420.0}
    assert result.raw_value == 420.0
    assert result.status is Status.REPORTED


# ---------------------------------------------------------------------------
# Aggregation properties
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("key", ["teacherAttendance", "enrollment", "schoolsReached", "furnitureAvailability"])
def test_parent_equals_pooled_children(registry, tree, mixed_submissions, key):
    """Every parent's numerator/denominator is the sum over its children."""
    results = Aggregator(registry, tree, mixed_submissions).compute("IT1", key)
    for entity in tree:
        children = [results[c] for c in entity.child_ids]
        if not children:
            continue
        parent = results[entity.id]
        assert parent.numerator == pytest.approx(sum(c.numerator for c in children))
        if parent.denominator is not None:
            assert parent.denominator == pytest.approx(sum(c.denominator for c in children))


def test_region_matches_raw_pooling(registry, tree, mixed_submissions):
    """Region attendance = all yes answers / all answers, not a mean of school percentages."""
    results = Aggregator(registry, tree, mixed_submissions).compute("IT1", "teacherAttendance")
    # S1 1/2, S2 3/3, S3 0/1
    assert results["R1"].numerator == 4
    assert results["R1"].denominator == 6
    assert results["R1"].percentage == 66.67
    assert results["D1"].percentage == 80.0
    assert results["D2"].percentage == 0.0


def test_weighted_average_pools_submissions(registry, tree, make_submissions):
    submissions = make_submissions(
        [
            _environment("S1", "Frequently", "Frequently", 5),  # 5.0
            _environment("S2", "Sometimes", "Sometimes", 2),  # 3.2
            _environment("S2", "Not at all", "Not at all", 1),  # 0.4
        ]
    )
    results = Aggregator(registry, tree, submissions).compute("IT1", "learningEnvironments")
    assert results["S2"].value == 1.8
    assert results["S2"].status is Status.BELOW_STANDARD
    assert results["C1"].value == pytest.approx(2.87, abs=0.005)
    assert results["C1"].denominator == 3
    assert results["C1"].percentage == 33.33
    assert results["R1"].value == results["C1"].value


def test_idempotent(registry, tree, mixed_submissions):
    agg = Aggregator(registry, tree, mixed_submissions)
    for key in ["teacherAttendance", "enrollment", "schoolsReached", "overallSecurity"]:
        assert agg.compute("IT1", key) == agg.compute("IT1", key)


def test_input_order_does_not_matter(registry, tree, mixed_submissions):
    shuffled = mixed_submissions.sample(frac=1.0, random_state=7)
    first = Aggregator(registry, tree, mixed_submissions).compute("IT1", "teacherAttendance")
    second = Aggregator(registry, tree, shuffled).compute("IT1", "teacherAttendance")
    assert first == second


# ---------------------------------------------------------------------------
# No data and bad data
# ---------------------------------------------------------------------------

def test_no_data_is_not_zero(registry, tree, make_submissions):
    submissions = make_submissions(_attendance("No", entity_id="S1"))
    results = Aggregator(registry, tree, submissions).compute("IT1", "teacherAttendance")

    assert results["S1"].percentage == 0.0
    assert results["S1"].status is Status.REPORTED

    assert results["S3"].percentage is None
    assert results["S3"].status is Status.NO_DATA
    assert not results["S3"].has_data
    assert results["D2"].status is Status.NO_DATA


def test_empty_submissions(registry, tree, make_submissions):
    agg = Aggregator(registry, tree, make_submissions([]))
    for key in ["teacherAttendance", "teacherSkills", "enrollment", "schoolsReached", "overallSecurity"]:
        result = agg.compute_result("IT1", key, "R1")
        assert result.status is Status.NO_DATA
        assert result.value in (None, 0.0)


def test_invalid_rating_excludes_only_that_submission(registry, tree, make_submissions):
    submissions = make_submissions(
        [
            _environment("S1", "Frequently", "Frequently", 5),
            _environment("S1", "Frequently", "Frequently", 9),
        ]
    )
    result = Aggregator(registry, tree, submissions).compute_result("IT1", "learningEnvironments", "S1")
    assert result.value == 5.0
    assert result.denominator == 1
    excluded = [c for c in result.detail if c.excluded]
    assert len(excluded) == 1
    assert excluded[0].submission_id == "sub-002"
    assert "outside" in excluded[0].error


def test_negative_count_excluded(registry, tree, make_submissions):
    submissions = make_submissions(
        [
            ("S1", "school-output", {"boys_enrolled": 100, "girls_enrolled": 90}),
            ("S2", "school-output", {"boys_enrolled": -5, "girls_enrolled": 90}),
        ]
    )
    results = Aggregator(registry, tree, submissions).compute("IT1", "enrollment")
    assert results["C1"].raw_value == 190.0
    assert results["S2"].status is Status.NO_DATA
    assert results["S2"].detail[0].excluded


def test_wrong_level_submission_excluded(registry, tree, make_submissions):
    """A school-output form filed by a district is flagged, not counted."""
    submissions = make_submissions(_attendance("Yes", entity_id="D1"))
    result = Aggregator(registry, tree, submissions).compute_result("IT1", "teacherAttendance", "D1")
    assert result.status is Status.NO_DATA
    assert result.detail[0].excluded
    assert "expected a school" in result.detail[0].error


def test_unknown_entity_submissions_ignored(registry, tree, make_submissions):
    submissions = make_submissions(_attendance("Yes", entity_id="S1") + _attendance("Yes", entity_id="S99"))
    result = Aggregator(registry, tree, submissions).compute_result("IT1", "teacherAttendance", "R1")
    assert result.denominator == 1


def test_other_itineraries_ignored(registry, tree, make_submissions):
    submissions = make_submissions(
        _attendance("Yes", itinerary_id="IT1") + _attendance("No", "No", itinerary_id="IT2")
    )
    agg = Aggregator(registry, tree, submissions)
    assert agg.compute_result("IT1", "teacherAttendance", "S1").percentage == 100.0
    assert agg.compute_result("IT2", "teacherAttendance", "S1").percentage == 0.0


def test_failed_node_reports_error_and_fold_continues(registry, tree, mixed_submissions, monkeypatch):
    agg = Aggregator(registry, tree, mixed_submissions)
    original = agg._own_partial

    def failing(defn, entity, submissions):
        if entity.id == "S2":
            raise IndicatorDataError("corrupt export row")
        return original(defn, entity, submissions)

    monkeypatch.setattr(agg, "_own_partial", failing)
    results = agg.compute("IT1", "teacherAttendance")

    assert results["S2"].status is Status.NO_DATA
    assert results["S2"].error == "corrupt export row"
    # S1 still reaches its parent
    assert results["C1"].numerator == 1
    assert results["C1"].denominator == 2


# ---------------------------------------------------------------------------
# Distinct counts and completion rates
# ---------------------------------------------------------------------------

def test_schools_reached_counts_each_school_once(registry, tree, mixed_submissions):
    results = Aggregator(registry, tree, mixed_submissions).compute("IT1", "schoolsReached")
    assert results["S1"].raw_value == 1
    assert results["C1"].members == frozenset({"S1", "S2"})
    assert results["R1"].raw_value == 3
    assert results["R1"].members == frozenset(SCHOOLS)


def test_completion_rates(registry, tree, mixed_submissions):
    agg = Aggregator(registry, tree, mixed_submissions)

    output = agg.compute("IT1", "outputCompletionRate")
    assert output["R1"].denominator == 3
    assert output["R1"].percentage == 100.0

    outcome = agg.compute("IT1", "outcomeCompletionRate")
    # only S1 filed both the checklist and partners-in-play
    assert outcome["R1"].numerator == 1
    assert outcome["R1"].percentage == 33.33
    assert outcome["S3"].percentage == 0.0


def test_district_output_sum(registry, tree, mixed_submissions):
    results = Aggregator(registry, tree, mixed_submissions).compute("IT1", "districtTeamMembersTrained")
    assert results["D1"].raw_value == 9
    assert results["R1"].raw_value == 9
    assert results["D2"].status is Status.NO_DATA


def test_facility_status_from_pooled_items(registry, tree, mixed_submissions):
    results = Aggregator(registry, tree, mixed_submissions).compute("IT1", "furnitureAvailability")
    # S1 has desks only: one adequate item, two missing
    assert results["S1"].status is Status.PARTIAL
    assert results["S1"].components["adequate"] == 1
    assert results["S2"].status is Status.NO_DATA


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_unknown_indicator(registry, tree, mixed_submissions):
    with pytest.raises(UnknownIndicator):
        Aggregator(registry, tree, mixed_submissions).compute("IT1", "nope")


def test_unknown_scope(registry, tree, mixed_submissions):
    with pytest.raises(EntityNotFound):
        Aggregator(registry, tree, mixed_submissions).compute("IT1", "enrollment", "D9")


def test_scoped_compute_covers_subtree_only(registry, tree, mixed_submissions):
    results = Aggregator(registry, tree, mixed_submissions).compute("IT1", "enrollment", "D1")
    assert set(results) == {"D1", "C1", "S1", "S2"}
    assert results["D1"].raw_value == 250


def test_tree_built_from_entities_rolls_up(registry, make_submissions):
    """Parents fold their children even when entities carry no child_ids."""
    tree = EntityTree(
        [
            Entity("R1", "region", "Region", None),
            Entity("D1", "district", "District", "R1"),
            Entity("C1", "circuit", "Circuit", "D1", child_ids=("S9",)),
            Entity("S1", "school", "School", "C1"),
        ]
    )
    results = Aggregator(registry, tree, make_submissions(_attendance("Yes"))).compute("IT1", "teacherAttendance")
    assert results["S1"].percentage == 100.0
    assert results["R1"].percentage == 100.0
    assert results["R1"].status is Status.REPORTED
