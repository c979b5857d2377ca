"""
Validation gate enforcement for weekly analytics.

Once validate_weekly_data has said should_generate: false, generation and
saving are refused no matter what the model asks for.
"""

import logging
from typing import Optional

from ...core import BlockDecision, ResultStore
from .tools import VALIDATION_KEY

logger = logging.getLogger(__name__)

BLOCK_MESSAGES = {
    "generate_weekly_analytics": "Cannot generate analytics - validation blocked: {reason}",
    "save_analytics_to_database": "Cannot save analytics - validation blocked generation: {reason}",
}


def enforce_validation_blocking(
    tool_name: str, tool_input: dict, store: ResultStore
) -> Optional[BlockDecision]:
    template = BLOCK_MESSAGES.get(tool_name)
    if template is None:
        return None

    validation = store.get(VALIDATION_KEY)
    if validation is None or not validation.succeeded:
        return None
    if validation.value.get("should_generate") is not False:
        return None

    logger.error(
        f"Blocking {tool_name}: validation returned should_generate=false "
        f"(flags={validation.value.get('blocking_flags')})"
    )
    return BlockDecision(
        reason=template.format(reason=validation.value.get("reason")),
        blocking_flags=tuple(validation.value.get("blocking_flags") or ()),
    )
