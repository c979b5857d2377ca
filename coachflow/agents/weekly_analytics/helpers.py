"""
Pure helpers for weekly analytics: week ids, data assessment, normalization
and result metrics.
"""

from datetime import date
from typing import Any

MIN_WORKOUTS_REQUIRED = 2
NORMALIZE_BELOW_COMPLETENESS = 0.7

COMPLETENESS_WEIGHTS = {
    "workouts": 0.5,
    "historical": 0.2,
    "coaching": 0.15,
    "memories": 0.15,
}

CONFIDENCE_LEVELS = ("low", "medium", "high")
REQUIRED_SECTIONS = (
    "metadata",
    "volume_breakdown",
    "weekly_progression",
    "performance_markers",
    "training_intelligence",
    "coaching_synthesis",
    "actionable_insights",
)


def week_id_for(day: date) -> str:
    """ISO-8601 week id (YYYY-Www) of the week containing day."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def assess_weekly_data(
    workout_count: int,
    historical_count: int,
    coaching_count: int,
    memory_count: int,
) -> dict:
    """
    Score how complete a week's data is and decide whether to generate.

    Generation is blocked when fewer than MIN_WORKOUTS_REQUIRED workouts were
    logged. Normalization is recommended below NORMALIZE_BELOW_COMPLETENESS.
    """
    w = COMPLETENESS_WEIGHTS
    completeness = 0.0
    validation_flags: list[str] = []
    blocking_flags: list[str] = []

    if workout_count >= 4:
        completeness += w["workouts"]
    elif workout_count >= 2:
        completeness += w["workouts"] * 0.7
    elif workout_count >= 1:
        completeness += w["workouts"] * 0.3
        validation_flags.append("minimal_workouts")
    else:
        validation_flags.append("no_workouts")

    if historical_count >= 8:
        completeness += w["historical"]
    elif historical_count >= 4:
        completeness += w["historical"] * 0.7
    elif historical_count >= 1:
        completeness += w["historical"] * 0.5
        validation_flags.append("limited_history")
    else:
        validation_flags.append("no_history")

    if coaching_count >= 2:
        completeness += w["coaching"]
    elif coaching_count >= 1:
        completeness += w["coaching"] * 0.5
    else:
        validation_flags.append("no_coaching_context")

    if memory_count >= 3:
        completeness += w["memories"]
    elif memory_count >= 1:
        completeness += w["memories"] * 0.5
    else:
        validation_flags.append("no_memories")

    if workout_count < MIN_WORKOUTS_REQUIRED:
        blocking_flags.append("insufficient_workouts")

    completeness = round(completeness, 4)
    should_generate = not blocking_flags
    reason = None
    if "insufficient_workouts" in blocking_flags:
        reason = (
            f"Insufficient workouts: {workout_count} found, "
            f"minimum {MIN_WORKOUTS_REQUIRED} required"
        )

    return {
        "is_valid": should_generate,
        "should_generate": should_generate,
        "should_normalize": completeness < NORMALIZE_BELOW_COMPLETENESS,
        "confidence": completeness,
        "completeness": completeness,
        "validation_flags": validation_flags,
        "blocking_flags": blocking_flags,
        "reason": reason,
    }


def analytics_metrics(analytics: dict) -> dict:
    """Summary metrics of a generated analytics document."""
    structured = analytics.get("structured_analytics") or {}
    human_summary = analytics.get("human_summary") or ""
    metadata = structured.get("metadata") or {}
    return {
        "analysis_confidence": metadata.get("analysis_confidence") or "medium",
        "data_completeness": metadata.get("data_completeness") or 0.8,
        "has_dual_output": bool(structured and human_summary),
        "human_summary_length": len(human_summary),
    }


def normalize_analytics(analytics: dict, week_id: str, week_start: date, week_end: date) -> dict:
    """
    Bring an analytics document into schema shape.

    Returns the normalized document plus the issues found; an issue is
    ``corrected`` when normalization could fix it. The result is valid when
    every issue was corrected.
    """
    issues: list[dict] = []

    def issue(path: str, message: str, corrected: bool) -> None:
        issues.append({"path": path, "message": message, "corrected": corrected})

    structured = analytics.get("structured_analytics")
    if not isinstance(structured, dict):
        issue("structured_analytics", "missing structured analytics", False)
        structured = {}
    else:
        structured = dict(structured)

    for section in REQUIRED_SECTIONS:
        if not isinstance(structured.get(section), dict if section == "metadata" else (dict, list)):
            issue(section, "missing section", True)
            structured[section] = {} if section == "metadata" else []

    metadata = dict(structured["metadata"])
    if metadata.get("week_id") != week_id:
        issue("metadata.week_id", f"week id {metadata.get('week_id')!r} does not match {week_id}", True)
        metadata["week_id"] = week_id

    for name, bound in (("date_range_start", week_start), ("date_range_end", week_end)):
        value = metadata.get(name)
        if not _is_iso_date(value) or not (week_start <= date.fromisoformat(value) <= week_end):
            issue(f"metadata.{name}", f"date {value!r} outside week boundaries", True)
            metadata[name] = bound.isoformat()

    confidence = str(metadata.get("analysis_confidence", "")).lower()
    if confidence not in CONFIDENCE_LEVELS:
        issue("metadata.analysis_confidence", f"unknown confidence {confidence!r}", True)
        confidence = "medium"
    metadata["analysis_confidence"] = confidence

    completeness = metadata.get("data_completeness")
    if not isinstance(completeness, (int, float)) or not 0 <= completeness <= 1:
        issue("metadata.data_completeness", f"invalid completeness {completeness!r}", True)
        completeness = 0.8 if not isinstance(completeness, (int, float)) else min(1.0, max(0.0, completeness))
    metadata["data_completeness"] = completeness
    structured["metadata"] = metadata

    human_summary = analytics.get("human_summary")
    if not isinstance(human_summary, str) or not human_summary.strip():
        issue("human_summary", "missing human summary", False)
        human_summary = ""

    corrected = sum(1 for i in issues if i["corrected"])
    return {
        "normalized_data": {
            "structured_analytics": structured,
            "human_summary": human_summary,
        },
        "is_valid": corrected == len(issues),
        "issues": issues,
        "issues_found": len(issues),
        "issues_corrected": corrected,
        "normalization_summary": normalization_summary(issues),
        "normalization_confidence": round(1.0 - 0.05 * len(issues), 2) if issues else 1.0,
    }


def normalization_summary(issues: list[dict]) -> str:
    if not issues:
        return "No normalization issues found."
    corrected = sum(1 for i in issues if i["corrected"])
    lines = [f"Found {len(issues)} issue(s), corrected {corrected}:"]
    lines.extend(
        f"- {i['path']}: {i['message']}{'' if i['corrected'] else ' (not corrected)'}"
        for i in issues
    )
    return "\n".join(lines)


def _is_iso_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value[:10])
    except ValueError:
        return False
    return len(value) == 10
