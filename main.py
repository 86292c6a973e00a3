"""
RTP Indicator Engine: end-to-end pipeline.

Reads the submissions workbook export (or simulates one when it is not
present), computes every registered indicator across the hierarchy and
prints smoke-test summaries.

Usage:
    python main.py [path/to/rtp_submissions_export.xlsx]
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from rtp_indicators.config import (
    OUTCOME_INDICATORS,
    OUTPUT_INDICATORS,
    PROGRAM_NAME,
    SUBMISSIONS_WORKBOOK_FILE,
)
from rtp_indicators.dashboard import IndicatorDashboard
from rtp_indicators.loaders import WorkbookSource, export_workbook
from rtp_indicators.registry import build_registry
from rtp_indicators.simulator import (
    generate_hierarchy,
    generate_itineraries,
    generate_submissions,
)
from rtp_indicators.status import Status
from rtp_indicators.transforms import build_dim_entity

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _fmt(value) -> str:
    return "n/a" if value is None else f"{value:,.2f}"


def main() -> None:
    """Run the full indicator pipeline and print smoke-test outputs."""

    print("=" * 70)
    print(f"  {PROGRAM_NAME.upper()}: School Monitoring Indicators")
    print("  Aggregation Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Load source data
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SOURCE DATA")
    print("-" * 40)

    path = Path(sys.argv[1]) if len(sys.argv) > 1 else SUBMISSIONS_WORKBOOK_FILE
    if not path.exists():
        logger.warning("%s not found; writing a simulated export", path)
        dim_entity = generate_hierarchy()
        dim_itinerary = generate_itineraries()
        fact_submission = generate_submissions(dim_entity, dim_itinerary)
        export_workbook(path, dim_entity, dim_itinerary, fact_submission)

    source = WorkbookSource(path)
    print(f"\nEntities: {len(source.dim_entity)} rows loaded")
    print(source.dim_entity["entity_type"].value_counts().to_string())
    print(f"\nItineraries: {len(source.dim_itinerary)} rows loaded")
    print(source.dim_itinerary.to_string(index=False))
    print(f"\nSubmissions: {len(source.fact_submission)} rows loaded")
    print(source.fact_submission.groupby(["itinerary_id", "category_id"]).size().to_string())

    # ------------------------------------------------------------------
    # 2. Build registry and dashboard
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] BUILDING REGISTRY & HIERARCHY")
    print("-" * 40)

    registry = build_registry()
    dashboard = IndicatorDashboard(registry, source)
    dim_entity = build_dim_entity(dashboard.tree)
    print(f"\nRegistry: {len(registry)} indicators")
    print(f"dim_entity: {len(dim_entity)} rows")
    print(dim_entity.head(8).to_string(index=False))

    itineraries = dashboard.get_available_itineraries()
    latest = itineraries[-1]
    region = dashboard.tree.roots()[0]

    # ------------------------------------------------------------------
    # 3. Dashboard outputs
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] DASHBOARD OUTPUTS")
    print("-" * 40)
    print(f"\nAvailable itineraries: {itineraries}")

    print(f"\nOutcome overview: {region.name}, itinerary {latest}")
    overview = dashboard.get_outcome_overview(latest, region.id)
    for key, card in overview["indicators"].items():
        print(f"  {card['label']:45s} | {_fmt(card['value']):>10s} | {card['status']}")

    print("\nOutput indicators:")
    for key in OUTPUT_INDICATORS:
        result = dashboard.get_indicator_result(latest, key, region.id)
        print(f"  {registry[key].label:45s} | {_fmt(result.value):>10s} | {result.status.value}")

    print("\nFacilities:")
    for key in ["furnitureAvailability", "sanitationAvailability", "securityItems", "overallSecurity"]:
        result = dashboard.get_indicator_result(latest, key, region.id)
        print(f"  {registry[key].label:45s} | {_fmt(result.percentage):>10s} | {result.status.value}")

    print(f"\nTeacher attendance breakdown under {region.name}:")
    print(dashboard.get_breakdown_table(latest, "teacherAttendance", region.id).to_string(index=False))

    print(f"\nTeacher skills trend for {region.name}:")
    skills_trend = dashboard.get_trend("teacherSkills", region.id)
    for label, value in skills_trend:
        print(f"  {label:30s} {_fmt(value)}")

    # ------------------------------------------------------------------
    # 4. Acceptance criteria verification
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    # Check 1: every outcome indicator reported for the region
    check1 = set(OUTCOME_INDICATORS) == set(overview["indicators"])
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] Overview has all {len(OUTCOME_INDICATORS)} outcome indicators")

    # Check 2: region enrollment equals the sum of its districts
    enrollment = dashboard.get_indicator_result(latest, "enrollment", region.id)
    districts = dashboard.tree.children(region.id)
    district_total = sum(
        dashboard.get_indicator_result(latest, "enrollment", d.id).raw_value for d in districts
    )
    check2 = enrollment.raw_value == district_total
    print(f"  [{'PASS' if check2 else 'FAIL'}] Region enrollment {enrollment.raw_value:,.0f} equals sum of districts {district_total:,.0f}")

    # Check 3: region attendance equals pooled district numerators / denominators
    attendance = dashboard.get_indicator_result(latest, "teacherAttendance", region.id)
    num = sum(dashboard.get_indicator_result(latest, "teacherAttendance", d.id).numerator for d in districts)
    den = sum(dashboard.get_indicator_result(latest, "teacherAttendance", d.id).denominator for d in districts)
    check3 = attendance.numerator == num and attendance.denominator == den
    print(f"  [{'PASS' if check3 else 'FAIL'}] Region attendance pools {num:.0f}/{den:.0f} from its districts")

    # Check 4: trend is chronological and bounded
    check4 = 0 < len(skills_trend) <= 5
    print(f"  [{'PASS' if check4 else 'FAIL'}] Teacher skills trend has {len(skills_trend)} points (1-5)")

    # Check 5: statuses come from the closed vocabulary
    table = dashboard.get_indicator_table(latest, "overallSecurity")
    check5 = set(table["status"]).issubset({s.value for s in Status})
    print(f"  [{'PASS' if check5 else 'FAIL'}] Security statuses: {sorted(set(table['status']))}")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
