"""
Save gate for program design.

A program is never saved when validation failed (or raised), or when
normalization reported the program as still invalid. A normalization call
that raised leaves the validated program in place.
"""

import logging
from typing import Optional

from ...core import BlockDecision, ResultStore
from .tools import NORMALIZATION_KEY, VALIDATION_KEY

logger = logging.getLogger(__name__)

GUARDED_TOOLS = {"save_program_to_database"}


def _issues(value) -> str:
    if not isinstance(value, dict):
        return "unknown error"
    issues = value.get("validation_issues") or value.get("normalization_summary")
    if isinstance(issues, list):
        return ", ".join(issues) or "no details"
    return issues or value.get("error") or "no details"


def enforce_save_blocking(tool_name: str, tool_input: dict, store: ResultStore) -> Optional[BlockDecision]:
    if tool_name not in GUARDED_TOOLS:
        return None

    validation = store.get(VALIDATION_KEY)
    if validation is not None:
        if not validation.succeeded:
            reason = f"Cannot save program - validation failed: {_issues(validation.value)}"
            logger.error(f"Blocking {tool_name}: {reason}")
            return BlockDecision(reason)
        if validation.value.get("is_valid") is False:
            reason = f"Cannot save program - validation failed: {_issues(validation.value)}"
            logger.error(f"Blocking {tool_name}: {reason}")
            return BlockDecision(reason, tuple(validation.value.get("validation_issues") or ()))

    normalization = store.get(NORMALIZATION_KEY)
    if normalization is not None and normalization.succeeded:
        if normalization.value.get("is_valid") is False:
            reason = f"Cannot save program - normalization failed: {_issues(normalization.value)}"
            logger.error(f"Blocking {tool_name}: {reason}")
            return BlockDecision(reason)
    return None
