# pipeline/triage_report.py
from typing import Any, Dict, List

from ..models.segmentation_result import Percentages, SegmentationResult, Severity

# Disease share (rust + scab, % of leaf) upper bounds per overall grade.
OVERALL_GRADES = ((5.0, "healthy"), (15.0, "mild"), (30.0, "moderate"))
DISEASE_ALERT_PCT = 5.0
MOSTLY_HEALTHY_PCT = 80.0
MIXED_INFECTION_PCT = 15.0


def overall_severity(percentages: Percentages) -> str:
    disease = percentages.rust + percentages.scab
    for upper, grade in OVERALL_GRADES:
        if disease < upper:
            return grade
    return "severe"


def recommendations(result: SegmentationResult) -> List[str]:
    p = result.percentages
    out: List[str] = []

    if p.rust > DISEASE_ALERT_PCT:
        out.append("Rust detected. Consider a copper-based fungicide.")
        if any(c.severity is Severity.HIGH for c in result.contours.get("rust", [])):
            out.append("Severe rust areas found. Prune the most affected parts.")

    if p.scab > DISEASE_ALERT_PCT:
        out.append("Scab detected. Apply a preventive fungicide treatment.")
        if any(c.severity is Severity.HIGH for c in result.contours.get("scab", [])):
            out.append("Severe scab found. Consider intensive treatment and better ventilation.")

    if p.healthy > MOSTLY_HEALTHY_PCT:
        out.append("The leaf is mostly healthy. Keep up preventive maintenance.")

    if p.rust > MIXED_INFECTION_PCT and p.scab > MIXED_INFECTION_PCT:
        out.append("Multiple diseases detected. Consult an agricultural specialist.")

    return out


def format_percentages(percentages: Percentages) -> Dict[str, str]:
    return {k: f"{v:.1f}%" for k, v in percentages.to_dict().items()}


def build_report(result: SegmentationResult) -> Dict[str, Any]:
    return {
        "overallSeverity": overall_severity(result.percentages),
        "recommendations": recommendations(result),
        "formatted": format_percentages(result.percentages),
    }
