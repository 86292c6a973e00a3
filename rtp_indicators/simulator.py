"""
Simulated data generator for the RTP indicator engine.

Generates a realistic region -> district -> circuit -> school hierarchy,
a series of monitoring itineraries and survey submissions for all four
categories. All values are synthetic; no real school data is used.
"""

import numpy as np
import pandas as pd

from .config import FREQUENCY_SCORES, TEACHER_SKILL_QUESTIONS

# Seed for reproducibility
_RNG = np.random.default_rng(42)

# ---------------------------------------------------------------------------
# Names and answer pools
# ---------------------------------------------------------------------------
_REGIONS = ["Northern", "Volta", "Upper East", "Ashanti", "Central"]

_WATER_SOURCES = ["Borehole", "Pipe borne", "Well", "Rain harvesting", "Not Available"]
_FACILITY_ANSWERS = ["Available", "Partial", "Not Available"]
_SECURITY_ANSWERS = ["Adequate", "Partial", "Inadequate"]
_FREQUENCY_ANSWERS = [label.title() for label in FREQUENCY_SCORES]

# Probability a school has each yes/no item
_YES_RATES = {
    "implementation_plan": 0.75,
    "ltp_lesson_plan": 0.6,
    "student_attendance": 0.85,
    "teacher_attendance": 0.8,
}


def _yes_no(rng, rate: float) -> str:
    return "Yes" if rng.random() < rate else "No"


def generate_hierarchy(
    n_regions: int = 2,
    districts_per_region: int = 2,
    circuits_per_district: int = 2,
    schools_per_circuit: int = 3,
) -> pd.DataFrame:
    """Generate a dim_entity table.

    Ids encode the path (R1, R1-D2, R1-D2-C1, R1-D2-C1-S3) so they are
    stable across runs.
    """
    rows = []
    for r in range(1, n_regions + 1):
        region_id = f"R{r}"
        region_name = _REGIONS[(r - 1) % len(_REGIONS)]
        rows.append({"entity_id": region_id, "entity_type": "region", "name": f"{region_name} Region", "parent_id": None})

        for d in range(1, districts_per_region + 1):
            district_id = f"{region_id}-D{d}"
            rows.append({"entity_id": district_id, "entity_type": "district", "name": f"{region_name} District {d}", "parent_id": region_id})

            for c in range(1, circuits_per_district + 1):
                circuit_id = f"{district_id}-C{c}"
                rows.append({"entity_id": circuit_id, "entity_type": "circuit", "name": f"Circuit {r}.{d}.{c}", "parent_id": district_id})

                for s in range(1, schools_per_circuit + 1):
                    rows.append({
                        "entity_id": f"{circuit_id}-S{s}",
                        "entity_type": "school",
                        "name": f"School {r}.{d}.{c}.{s}",
                        "parent_id": circuit_id,
                    })

    return pd.DataFrame(rows)


def generate_itineraries(
    n_itineraries: int = 4,
    start_date: str = "2025-01-13",
    weeks_apart: int = 6,
) -> pd.DataFrame:
    """Generate monitoring rounds, each lasting two weeks."""
    starts = pd.date_range(start_date, periods=n_itineraries, freq=f"{weeks_apart}W-MON")
    rows = []
    for i, start in enumerate(starts, start=1):
        rows.append({
            "itinerary_id": f"IT{i:02d}",
            "label": f"Itinerary {i} ({start.strftime('%b %Y')})",
            "start_date": start,
            "end_date": start + pd.Timedelta(days=13),
        })
    return pd.DataFrame(rows)


def _school_output(rng) -> dict:
    boys = int(rng.integers(80, 260))
    return {
        "student_attendance": _yes_no(rng, _YES_RATES["student_attendance"]),
        "teacher_attendance": _yes_no(rng, _YES_RATES["teacher_attendance"]),
        "boys_enrolled": boys,
        "girls_enrolled": int(boys * rng.uniform(0.85, 1.15)),
        "teacher_champions_male": int(rng.integers(0, 3)),
        "teacher_champions_female": int(rng.integers(0, 3)),
    }


def _district_output(rng) -> dict:
    return {
        "team_members_trained_male": int(rng.integers(2, 9)),
        "team_members_trained_female": int(rng.integers(2, 9)),
    }


def _consolidated_checklist(rng) -> dict:
    answers = {
        "implementation_plan": _yes_no(rng, _YES_RATES["implementation_plan"]),
        "ltp_lesson_plan": _yes_no(rng, _YES_RATES["ltp_lesson_plan"]),
        "development_plan_upload": (
            f"ltp_plan_{rng.integers(1000, 9999)}.pdf" if rng.random() < 0.55 else "Not Available"
        ),
        "water_source": str(rng.choice(_WATER_SOURCES, p=[0.4, 0.2, 0.15, 0.1, 0.15])),
        "security_personnel": int(rng.integers(0, 3)),
    }
    for item in ["pupil_desks", "teacher_tables", "teacher_chairs", "toilet", "urinal", "dustbins", "veronica_buckets"]:
        answers[item] = str(rng.choice(_FACILITY_ANSWERS, p=[0.6, 0.25, 0.15]))
    for item in ["fencing", "gates", "cctv_cameras"]:
        answers[item] = str(rng.choice(_SECURITY_ANSWERS, p=[0.45, 0.3, 0.25]))
    return answers


def _partners_in_play(rng) -> dict:
    answers = {
        "friendly_tone": str(rng.choice(_FREQUENCY_ANSWERS, p=[0.45, 0.3, 0.1, 0.1, 0.05])),
        "acknowledging_effort": str(rng.choice(_FREQUENCY_ANSWERS, p=[0.4, 0.35, 0.1, 0.1, 0.05])),
        "pupil_participation": int(rng.integers(1, 6)),
    }
    for question in TEACHER_SKILL_QUESTIONS:
        answers[question] = int(np.clip(rng.normal(3.6, 0.9), 1, 5).round())
    return answers


_CATEGORY_GENERATORS = {
    "school-output": _school_output,
    "consolidated-checklist": _consolidated_checklist,
    "partners-in-play": _partners_in_play,
}


def generate_submissions(
    dim_entity: pd.DataFrame,
    dim_itinerary: pd.DataFrame,
    response_rate: float = 0.85,
    rng: np.random.Generator | None = None,
) -> pd.DataFrame:
    """Generate fact_submission rows for every itinerary.

    Each school submits each school-level category with probability
    `response_rate`; each district submits its district-output form with
    the same probability. Submission times fall inside the itinerary window.
    """
    rng = rng if rng is not None else _RNG
    schools = dim_entity.loc[dim_entity["entity_type"] == "school", "entity_id"].tolist()
    districts = dim_entity.loc[dim_entity["entity_type"] == "district", "entity_id"].tolist()

    rows = []
    for itinerary in dim_itinerary.itertuples(index=False):
        window = max((itinerary.end_date - itinerary.start_date).days, 1)

        def submitted_at():
            return itinerary.start_date + pd.Timedelta(
                days=int(rng.integers(0, window)), hours=int(rng.integers(8, 16))
            )

        for school_id in schools:
            for category_id, generate in _CATEGORY_GENERATORS.items():
                if rng.random() >= response_rate:
                    continue
                rows.append({
                    "submission_id": f"{itinerary.itinerary_id}-{school_id}-{category_id}",
                    "entity_id": school_id,
                    "itinerary_id": itinerary.itinerary_id,
                    "category_id": category_id,
                    "submitted_at": submitted_at(),
                    "answers": generate(rng),
                })

        for district_id in districts:
            if rng.random() >= response_rate:
                continue
            rows.append({
                "submission_id": f"{itinerary.itinerary_id}-{district_id}-district-output",
                "entity_id": district_id,
                "itinerary_id": itinerary.itinerary_id,
                "category_id": "district-output",
                "submitted_at": submitted_at(),
                "answers": _district_output(rng),
            })

    return pd.DataFrame(rows)
