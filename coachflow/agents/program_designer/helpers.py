"""
Pure helpers for program design: requirement parsing, program metrics,
training-frequency compliance and structural normalization.
"""

import logging
import re
from datetime import date, timedelta
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_PROGRAM_DURATION_DAYS = 56
MIN_PROGRAM_DURATION_DAYS = 1
MAX_PROGRAM_DURATION_DAYS = 180
DEFAULT_TRAINING_FREQUENCY = 4
MIN_TRAINING_FREQUENCY = 1
FREQUENCY_TOLERANCE = 0.2


def _duration_count(text: str) -> int:
    match = re.search(r"\d+", text)
    if match:
        return int(match.group(0))
    if "couple" in text:
        return 2
    if "few" in text:
        return 3
    if "several" in text or "some" in text:
        return 4
    if re.search(r"\b(a|an)\s+(week|month|day)", text):
        return 1
    return 8


def parse_program_duration(value: Any, default_days: int = DEFAULT_PROGRAM_DURATION_DAYS) -> int:
    """
    Program duration in days from a number or free text.

    "2 weeks" -> 14, "couple of weeks" -> 14, "3 months" -> 90 (30-day
    months), "a fortnight" -> 14, "30" -> 30. Unparseable text falls back to
    default_days.
    """
    if value is None:
        return default_days
    if isinstance(value, bool):
        return default_days
    if isinstance(value, (int, float)):
        return int(value)
    if not isinstance(value, str):
        return default_days

    text = value.strip().lower()
    if re.search(r"\bfortnights?\b", text):
        return 14
    count = _duration_count(text)
    if re.search(r"\bweeks?\b", text):
        return count * 7
    if re.search(r"\bmonths?\b", text):
        return count * 30
    if re.search(r"\bdays?\b", text):
        return count
    try:
        return int(text)
    except ValueError:
        logger.warning(f"Could not parse program duration {value!r}, using {default_days} days")
        return default_days


def validate_program_duration(days: int, raw: Any) -> None:
    if not MIN_PROGRAM_DURATION_DAYS <= days <= MAX_PROGRAM_DURATION_DAYS:
        raise ValueError(
            f'Invalid program duration: "{raw}". Must be a number between '
            f"{MIN_PROGRAM_DURATION_DAYS} and {MAX_PROGRAM_DURATION_DAYS} days (6 months max)."
        )


def parse_training_frequency(value: Any) -> int:
    """Sessions per week; raises ValueError when not a positive number."""
    if value is None or value == "":
        return DEFAULT_TRAINING_FREQUENCY
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        frequency = int(value)
    else:
        match = re.search(r"\d+", str(value))
        if not match:
            raise ValueError(f'Invalid training frequency: "{value}". Must be a positive number.')
        frequency = int(match.group(0))
    if frequency < MIN_TRAINING_FREQUENCY:
        raise ValueError(f'Invalid training frequency: "{value}". Must be a positive number.')
    return frequency


def split_list(value: Any) -> list[str]:
    """Comma-separated text or a list, as a list of non-empty strings."""
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def program_metrics(templates: list[dict]) -> dict:
    total = len(templates)
    unique_days = len({t.get("day_number") for t in templates})
    return {
        "total_workout_templates": total,
        "unique_training_days": unique_days,
        "average_sessions_per_day": round(total / unique_days, 1) if unique_days else 0.0,
    }


def check_training_frequency(templates: list[dict], duration_days: int, frequency: int) -> dict:
    """
    Decide whether the program trains on too many days.

    Pruning is recommended only when there are MORE unique training days than
    expected and the excess is beyond a 20% tolerance.
    """
    if not templates:
        return {"should_prune": False}

    metrics = program_metrics(templates)
    expected = int((duration_days / 7) * frequency)
    tolerance = expected * FREQUENCY_TOLERANCE
    current = metrics["unique_training_days"]
    variance = abs(current - expected)

    if current > expected and variance > tolerance:
        return {
            "should_prune": True,
            "pruning_metadata": {
                "current_training_days": current,
                "expected_training_days": expected,
                "variance": variance,
                "target_training_days": expected,
            },
        }
    return {"should_prune": False}


def phase_continuity_issues(phases: list[dict], total_days: int) -> list[str]:
    """Gaps, overlaps and boundary mismatches in a phase list."""
    issues: list[str] = []
    if not phases:
        return issues
    ordered = sorted(phases, key=lambda p: p.get("start_day") or 0)
    if ordered[0].get("start_day") != 1:
        issues.append(f"First phase starts on day {ordered[0].get('start_day')}, expected 1")
    for prev, cur in zip(ordered, ordered[1:]):
        expected = (prev.get("end_day") or 0) + 1
        if cur.get("start_day") != expected:
            issues.append(
                f"Phase {cur.get('phase_id')} starts on day {cur.get('start_day')}, expected {expected}"
            )
    if ordered[-1].get("end_day") != total_days:
        issues.append(f"Last phase ends on day {ordered[-1].get('end_day')}, expected {total_days}")
    return issues


def ensure_program_dates(program: dict, today: Optional[date] = None) -> dict:
    """Fill start_date (today) and end_date (start + total_days - 1) when missing."""
    program = dict(program)
    if not program.get("start_date"):
        program["start_date"] = (today or date.today()).isoformat()
    if not program.get("end_date") and program.get("total_days"):
        start = date.fromisoformat(program["start_date"])
        program["end_date"] = (start + timedelta(days=int(program["total_days"]) - 1)).isoformat()
    return program


def validate_program(program: dict, templates: list[dict]) -> dict:
    """Completeness check of an assembled program."""
    issues: list[str] = []
    for field_name, label in (
        ("program_id", "Missing program_id"),
        ("name", "Missing name"),
        ("start_date", "Missing start_date"),
        ("end_date", "Missing end_date"),
        ("total_days", "Missing total_days"),
    ):
        if not program.get(field_name):
            issues.append(label)
    if not program.get("phases"):
        issues.append("Missing phases")
    if not templates:
        issues.append("No workout templates")

    confidence = max(0.0, min(1.0, round(1.0 - 0.1 * len(issues), 2)))
    continuity = phase_continuity_issues(program.get("phases") or [], program.get("total_days") or 0)
    return {
        "is_valid": not issues,
        "confidence": confidence,
        "validation_issues": issues,
        "continuity_issues": continuity,
        "should_normalize": bool(continuity) or confidence < 0.9,
    }


def normalize_program(program: dict, templates: list[dict]) -> dict:
    """
    Repair program structure: contiguous phases covering the whole program,
    consistent phase durations, and templates with ids and phase ids.
    """
    issues: list[dict] = []
    normalized = dict(program)
    total_days = int(normalized.get("total_days") or 0)

    if not normalized.get("name"):
        normalized["name"] = f"{total_days}-Day Training Program" if total_days else "Custom Training Program"
        issues.append({"message": "Missing name", "corrected": True})

    phases = sorted(
        (dict(p) for p in normalized.get("phases") or []),
        key=lambda p: p.get("start_day") or 0,
    )
    next_day = 1
    for i, phase in enumerate(phases):
        if not phase.get("phase_id"):
            phase["phase_id"] = f"phase_{i + 1}"
            issues.append({"message": f"Phase {i + 1} missing phase_id", "corrected": True})
        if phase.get("start_day") != next_day:
            issues.append(
                {"message": f"Phase {phase['phase_id']} start moved to day {next_day}", "corrected": True}
            )
            phase["start_day"] = next_day
        end_day = phase.get("end_day") or phase["start_day"]
        if i == len(phases) - 1 and total_days and end_day != total_days:
            issues.append(
                {"message": f"Last phase end moved to day {total_days}", "corrected": True}
            )
            end_day = total_days
        if end_day < phase["start_day"]:
            issues.append({"message": f"Phase {phase['phase_id']} ends before it starts", "corrected": False})
            end_day = phase["start_day"]
        phase["end_day"] = end_day
        phase["duration_days"] = end_day - phase["start_day"] + 1
        next_day = end_day + 1
    normalized["phases"] = phases

    if not phases:
        issues.append({"message": "Program has no phases", "corrected": False})

    fixed_templates = []
    for i, template in enumerate(templates):
        template = dict(template)
        if not template.get("template_id"):
            template["template_id"] = f"{template.get('phase_id', 'template')}_{i + 1}"
            issues.append({"message": f"Template {i + 1} missing template_id", "corrected": True})
        if not isinstance(template.get("day_number"), int):
            issues.append({"message": f"Template {template['template_id']} has no day_number", "corrected": False})
        fixed_templates.append(template)

    normalized = ensure_program_dates(normalized)
    corrected = sum(1 for i in issues if i["corrected"])
    return {
        "normalized_program": normalized,
        "normalized_templates": fixed_templates,
        "is_valid": corrected == len(issues),
        "issues_found": len(issues),
        "corrections_made": corrected,
        "normalization_summary": "; ".join(i["message"] for i in issues) or "No issues found.",
        "confidence": max(0.0, round(1.0 - 0.05 * (len(issues) - corrected), 2)),
    }
