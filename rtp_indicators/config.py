"""
Configuration: indicator registry table, answer vocabularies, constants.

INDICATOR_REGISTRY maps each canonical indicator key to its formula kind,
the survey questions it reads, weights, threshold, scale and the status
family used to classify it. It is static data: build an
``IndicatorRegistry`` from it with ``registry.build_registry``.
"""

from pathlib import Path

# ---------------------------------------------------------------------------
# File paths: adjust these if source files move
# ---------------------------------------------------------------------------
DATA_DIR = Path(__file__).resolve().parent.parent

SUBMISSIONS_WORKBOOK_FILE = DATA_DIR / "rtp_submissions_export.xlsx"

# ---------------------------------------------------------------------------
# Program identity
# ---------------------------------------------------------------------------
PROGRAM_NAME = "Right to Play"

# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------
# Ordered top-down. A node's parent must be of the level directly above it.
ENTITY_LEVELS = ["region", "district", "circuit", "school"]

# Submission category -> level of the entity that submits it
CATEGORY_LEVELS: dict[str, str] = {
    "school-output": "school",
    "district-output": "district",
    "consolidated-checklist": "school",
    "partners-in-play": "school",
}

# ---------------------------------------------------------------------------
# Answer vocabularies (compared lower-cased and stripped)
# ---------------------------------------------------------------------------
POSITIVE_ANSWERS = {"yes", "true", "available", "adequate", "functional", "present"}
PARTIAL_ANSWERS = {"partial", "not functioning"}
NOT_AVAILABLE_ANSWERS = {"not available", "none", "no", "n/a", ""}

# Partners in Play frequency questions (friendly tone, acknowledging effort)
FREQUENCY_SCORES: dict[str, float] = {
    "frequently": 5.0,
    "sometimes": 4.0,
    "only boys": 3.0,
    "only girls": 3.0,
    "not at all": 0.0,
}

TEACHER_SKILL_QUESTIONS = [
    "teacher_skill_q29",
    "teacher_skill_q30",
    "teacher_skill_q31",
    "teacher_skill_q32",
    "teacher_skill_q33",
    "teacher_skill_q39",
    "teacher_skill_q45",
    "teacher_skill_q46",
    "teacher_skill_q48",
    "teacher_skill_q49",
]

# ---------------------------------------------------------------------------
# Indicator Registry
# ---------------------------------------------------------------------------
# kind: "ratio", "weightedAverage", "sum" or "distinctCount"
# family: status vocabulary ("rate", "availability", "security", "scored", "count")
# categories: submission categories the formula reads
# threshold: numeric cut line on the headline value, or None
# scale_max: 5 for rating questions, 100 for percentages
INDICATOR_REGISTRY: dict[str, dict] = {
    "implementationPlans": {
        "label": "Schools with implementation plans",
        "kind": "ratio",
        "family": "rate",
        "categories": ["consolidated-checklist"],
        "inputs": ["implementation_plan"],
        "scale_max": 100,
    },
    "developmentPlans": {
        "label": "Schools with LtP development plans",
        "kind": "ratio",
        "family": "rate",
        "categories": ["consolidated-checklist"],
        "inputs": ["development_plan_upload"],
        "open_inputs": ["development_plan_upload"],
        "scale_max": 100,
    },
    "lessonPlans": {
        "label": "Teachers with LtP lesson plans",
        "kind": "ratio",
        "family": "rate",
        "categories": ["consolidated-checklist"],
        "inputs": ["ltp_lesson_plan"],
        "scale_max": 100,
    },
    "studentAttendance": {
        "label": "Pupils attending on visit",
        "kind": "ratio",
        "family": "rate",
        "categories": ["school-output"],
        "inputs": ["student_attendance"],
        "scale_max": 100,
    },
    "teacherAttendance": {
        "label": "Teachers attending on visit",
        "kind": "ratio",
        "family": "rate",
        "categories": ["school-output"],
        "inputs": ["teacher_attendance"],
        "scale_max": 100,
    },
    "learningEnvironments": {
        "label": "Learning environments using LtP methods",
        "kind": "weightedAverage",
        "family": "scored",
        "categories": ["partners-in-play"],
        "inputs": ["friendly_tone", "acknowledging_effort", "pupil_participation"],
        "weights": [0.30, 0.30, 0.40],
        "score_maps": {
            "friendly_tone": FREQUENCY_SCORES,
            "acknowledging_effort": FREQUENCY_SCORES,
        },
        "threshold": 3.5,
        "scale_max": 5,
    },
    "teacherSkills": {
        "label": "Teachers with LtP facilitation skills",
        "kind": "weightedAverage",
        "family": "scored",
        "categories": ["partners-in-play"],
        "inputs": TEACHER_SKILL_QUESTIONS,
        "weights": [0.1] * len(TEACHER_SKILL_QUESTIONS),
        "threshold": 3.5,
        "scale_max": 5,
    },
    "enrollment": {
        "label": "Total primary enrollment",
        "kind": "sum",
        "family": "count",
        "categories": ["school-output"],
        "inputs": ["boys_enrolled", "girls_enrolled"],
        "component_labels": ["boys", "girls"],
    },
    "teacherChampions": {
        "label": "Teacher champions",
        "kind": "sum",
        "family": "count",
        "categories": ["school-output"],
        "inputs": ["teacher_champions_male", "teacher_champions_female"],
        "component_labels": ["male", "female"],
    },
    "districtTeamMembersTrained": {
        "label": "District team members trained",
        "kind": "sum",
        "family": "count",
        "categories": ["district-output"],
        "inputs": ["team_members_trained_male", "team_members_trained_female"],
        "component_labels": ["male", "female"],
    },
    "schoolsReached": {
        "label": "Schools reached",
        "kind": "distinctCount",
        "family": "count",
        "categories": ["school-output", "consolidated-checklist", "partners-in-play"],
        "inputs": [],
        "count_level": "school",
    },
    "outputCompletionRate": {
        "label": "Schools with output indicators submitted",
        "kind": "ratio",
        "family": "rate",
        "unit": "entity",
        "categories": ["school-output"],
        "inputs": [],
        "scale_max": 100,
    },
    "outcomeCompletionRate": {
        "label": "Schools with outcome surveys completed",
        "kind": "ratio",
        "family": "rate",
        "unit": "entity",
        "categories": ["consolidated-checklist", "partners-in-play"],
        "inputs": [],
        "scale_max": 100,
    },
    "furnitureAvailability": {
        "label": "Furniture",
        "kind": "ratio",
        "family": "availability",
        "categories": ["consolidated-checklist"],
        "inputs": ["pupil_desks", "teacher_tables", "teacher_chairs"],
        "scale_max": 100,
    },
    "sanitationAvailability": {
        "label": "Sanitation",
        "kind": "ratio",
        "family": "availability",
        "categories": ["consolidated-checklist"],
        "inputs": ["toilet", "urinal", "water_source", "dustbins", "veronica_buckets"],
        "open_inputs": ["water_source"],
        "scale_max": 100,
    },
    "securityItems": {
        "label": "Security items",
        "kind": "ratio",
        "family": "availability",
        "categories": ["consolidated-checklist"],
        "inputs": ["fencing", "gates", "cctv_cameras", "security_personnel"],
        "scale_max": 100,
    },
    "overallSecurity": {
        "label": "Overall security",
        "kind": "ratio",
        "family": "security",
        "categories": ["consolidated-checklist"],
        "inputs": ["fencing", "gates", "cctv_cameras", "security_personnel"],
        "scale_max": 100,
    },
}

# Indicator groupings for overview cards
OUTCOME_INDICATORS = [
    "implementationPlans",
    "developmentPlans",
    "lessonPlans",
    "learningEnvironments",
    "teacherSkills",
    "enrollment",
    "schoolsReached",
]

OUTPUT_INDICATORS = [
    "teacherChampions",
    "districtTeamMembersTrained",
    "outputCompletionRate",
    "outcomeCompletionRate",
]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
PERCENT_DECIMALS = 2
SCORE_DECIMALS = 2
WEIGHT_TOLERANCE = 1e-9
FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_TREND_LIMIT = 5
