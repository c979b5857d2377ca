"""
Retry supervisor.

Decides, with pure predicates, whether a non-successful run deserves one
directive retry, and runs that retry. Never retries more than once.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable

from ..exceptions import GatewayError
from .assembler import RunOutcome, Skipped, Success
from .store import StoredResult

logger = logging.getLogger(__name__)

QUESTION_MARKERS = ("?", "need to", "should i", "would you like", "can you confirm")

DEFAULT_PLUMBING_PATTERNS = (
    re.compile(r"requirements not (?:loaded|found)", re.IGNORECASE),
    re.compile(r"not found in stored", re.IGNORECASE),
    re.compile(r"missing stored result", re.IGNORECASE),
)

VALIDATION_FAILURE = re.compile(r"validation failed", re.IGNORECASE)


def looks_like_question(text: str) -> bool:
    """True if the final text asks the (absent) user something."""
    lowered = (text or "").lower()
    return any(marker in lowered for marker in QUESTION_MARKERS)


def too_few_tools_completed(snapshot: dict[str, StoredResult], minimum: int) -> bool:
    succeeded = sum(1 for r in snapshot.values() if r.succeeded)
    return succeeded < minimum


def matches_plumbing_defect(reason: str, patterns=DEFAULT_PLUMBING_PATTERNS) -> bool:
    return any(p.search(reason or "") for p in patterns)


def reports_validation_failure(reason: str) -> bool:
    return bool(VALIDATION_FAILURE.search(reason or ""))


def outcome_reason(outcome: RunOutcome) -> str:
    return getattr(outcome, "reason", "") or ""


@dataclass
class Attempt:
    """What one run attempt produced."""

    outcome: RunOutcome
    final_text: str
    snapshot: dict[str, StoredResult] = field(default_factory=dict)


def should_retry(
    attempt: Attempt,
    min_completed_tools: int,
    plumbing_patterns=DEFAULT_PLUMBING_PATTERNS,
) -> bool:
    """Retry criteria; all inputs come from the finished attempt."""
    if isinstance(attempt.outcome, Success):
        return False
    # A gate block is deterministic; a retry would be blocked the same way.
    if isinstance(attempt.outcome, Skipped) and attempt.outcome.blocking_flags:
        return False
    reason = outcome_reason(attempt.outcome)
    if reports_validation_failure(reason):
        return False
    return (
        too_few_tools_completed(attempt.snapshot, min_completed_tools)
        or looks_like_question(attempt.final_text)
        or matches_plumbing_defect(reason, plumbing_patterns)
    )


def directive_instruction(workflow: str, steps: list[str], attempt: Attempt, echo_chars: int = 200) -> str:
    """
    Retry prompt that names every step still to do and echoes prior output.

    Steps whose tool already succeeded are marked done; the model must still
    re-run them because the result store is cleared before the retry.
    """
    done = {r.tool_name for r in attempt.snapshot.values() if r.succeeded}
    previous = (attempt.final_text or "").strip()
    lines = [
        f"CRITICAL OVERRIDE: You did not complete the {workflow} workflow.",
        "",
        f'Your previous response: "{previous[:echo_chars]}{"..." if len(previous) > echo_chars else ""}"',
        "",
        "You MUST now complete the workflow by calling ALL required tools, in order:",
    ]
    for i, step in enumerate(steps, 1):
        tool_name = step.split(" ", 1)[0]
        marker = " (ALREADY DONE - call it again, earlier results were discarded)" if tool_name in done else ""
        lines.append(f"{i}. {step}{marker}")

    if done:
        lines.append("")
        lines.append("Earlier tool output to reuse:")
        for record in attempt.snapshot.values():
            if record.succeeded:
                lines.append(f"- {record.key}: {_compact(record.value, echo_chars)}")

    lines.extend(
        [
            "",
            "- Make reasonable assumptions for any missing information",
            "- DO NOT ask any questions; nobody will answer them",
            "- CALL YOUR TOOLS until the final save step succeeds",
        ]
    )
    return "\n".join(lines)


def _compact(value, limit: int) -> str:
    text = json.dumps(value, default=str)
    return text if len(text) <= limit else text[:limit] + "..."


class RetrySupervisor:
    """
    Wraps a run attempt with at most one directive retry.

    ``run_attempt(instruction)`` performs one full attempt against a fresh,
    empty result store and returns an Attempt. ``build_retry_instruction``
    turns the first attempt into a directive prompt.
    """

    def __init__(
        self,
        run_attempt: Callable[[str], Attempt],
        build_retry_instruction: Callable[[Attempt], str],
        min_completed_tools: int,
        plumbing_patterns=DEFAULT_PLUMBING_PATTERNS,
        enabled: bool = True,
        run_id: str = "",
    ):
        self.run_attempt = run_attempt
        self.build_retry_instruction = build_retry_instruction
        self.min_completed_tools = min_completed_tools
        self.plumbing_patterns = plumbing_patterns
        self.enabled = enabled
        self.run_id = run_id
        self.retried = False

    def run(self, instruction: str) -> RunOutcome:
        id_prefix = f"[{self.run_id}] " if self.run_id else ""
        first = self.run_attempt(instruction)

        if not self.enabled or not should_retry(
            first, self.min_completed_tools, self.plumbing_patterns
        ):
            return first.outcome

        logger.warning(
            f"{id_prefix}Retrying once: outcome={first.outcome.status} "
            f"reason={outcome_reason(first.outcome)[:200]}"
        )
        self.retried = True
        try:
            second = self.run_attempt(self.build_retry_instruction(first))
        except GatewayError as e:
            logger.error(f"{id_prefix}Model gateway error during retry, returning original outcome: {e}")
            return first.outcome

        if isinstance(second.outcome, Success):
            logger.info(f"{id_prefix}Retry succeeded")
            return second.outcome

        logger.warning(
            f"{id_prefix}Retry did not succeed ({second.outcome.status}), returning original outcome"
        )
        return first.outcome
