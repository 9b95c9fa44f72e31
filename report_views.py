"""Read-only summaries derived from stored reports."""
from typing import Any, Dict, Iterable, List, Optional

from models import ControlMeasure, Hazard, InspectionReport, ReportSummary
from risk_module import RISK_LEVELS, highest_level

UNTITLED_REPORT = "Identifikasi Bahaya Tanpa Judul"

# WORK PRACTICE shows up in older model output.
CONTROL_KEYWORDS = ["ELIMINASI", "SUBSTITUSI", "REKAYASA", "ADMINISTRASI", "WORK PRACTICE", "APD"]


def highest_risk_level(report: InspectionReport) -> Optional[str]:
    return highest_level(h.initial_risk.risk_level for h in report.hazards)


def highest_residual_level(report: InspectionReport) -> Optional[str]:
    return highest_level(h.residual_risk.risk_level for h in report.hazards)


def report_title(report: InspectionReport) -> str:
    title = " / ".join(t.description for t in report.tasks if t.description)
    return title or UNTITLED_REPORT


def report_thumbnail(report: InspectionReport) -> Optional[str]:
    for task in report.tasks:
        if task.image_data_url:
            return task.image_data_url
    return None


def summarize(report: InspectionReport) -> ReportSummary:
    return ReportSummary(
        id=report.id,
        date=report.date,
        title=report_title(report),
        thumbnail_data_url=report_thumbnail(report),
        highest_risk_level=highest_risk_level(report),
        hazard_count=len(report.hazards),
        task_count=len(report.tasks),
    )


def summarize_all(reports: Iterable[InspectionReport]) -> List[ReportSummary]:
    return [summarize(r) for r in reports]


def risk_level_counts(hazards: Iterable[Hazard], which: str = "initial") -> Dict[str, int]:
    if which not in ("initial", "residual"):
        raise ValueError(f"which must be 'initial' or 'residual', not {which!r}")
    counts = {level: 0 for level in RISK_LEVELS}
    for hazard in hazards:
        risk = hazard.initial_risk if which == "initial" else hazard.residual_risk
        counts[risk.risk_level] += 1
    return counts


def parse_risk_controls(text: str) -> List[ControlMeasure]:
    """Best-effort split of ``LEVEL: description`` lines.

    Lines that do not start with a known level keyword followed by a colon are
    kept as free text with ``level=None``; nothing is rejected.
    """
    measures = []
    for line in (text or "").split("\n"):
        line = line.strip()
        if not line:
            continue
        keyword = next((k for k in CONTROL_KEYWORDS if line.upper().startswith(k)), None)
        if keyword and ":" in line:
            level, description = line.split(":", 1)
            measures.append(ControlMeasure(level=level.strip().upper(), description=description.strip()))
        else:
            measures.append(ControlMeasure(level=None, description=line))
    return measures


def residual_risk_warnings(report: InspectionReport) -> List[Dict[str, Any]]:
    """Hazards whose residual score is above the initial score (advisory only)."""
    warnings = []
    for index, hazard in enumerate(report.hazards):
        initial, residual = hazard.initial_risk.risk_score, hazard.residual_risk.risk_score
        if residual > initial:
            warnings.append({
                "hazardIndex": index,
                "potentialHazard": hazard.potential_hazard,
                "initialRiskScore": initial,
                "residualRiskScore": residual,
            })
    return warnings


def control_breakdown(report: InspectionReport) -> Dict[str, Any]:
    return {
        "reportId": report.id,
        "hazards": [
            {
                "potentialHazard": h.potential_hazard,
                "controls": [m.to_json_dict() for m in parse_risk_controls(h.risk_control)],
            }
            for h in report.hazards
        ],
        "initialCounts": risk_level_counts(report.hazards, "initial"),
        "residualCounts": risk_level_counts(report.hazards, "residual"),
        "highestResidualLevel": highest_residual_level(report),
        "residualWarnings": residual_risk_warnings(report),
    }
