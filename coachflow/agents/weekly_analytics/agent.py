"""
Weekly analytics agent.

Generates, validates and stores one user's analytics for one ISO week.
"""

import logging
from typing import Any, Optional

from ...collaborators import CompletionClient, ObjectStore, RecordStore
from ...core import Agent, BlockDecision, ResultAssembler, ResultStore, StoredResult, ToolSet
from ...core.retry import Attempt, directive_instruction
from . import prompts
from .blocking import enforce_validation_blocking
from .context import WeeklyAnalyticsContext
from .tools import (
    ANALYTICS_KEY,
    FETCH_KEY,
    NORMALIZATION_KEY,
    SAVE_KEY,
    VALIDATION_KEY,
    WeeklyAnalyticsTools,
    build_save_metadata,
)

logger = logging.getLogger(__name__)


def _succeeded(snapshot: dict[str, StoredResult], key: str) -> Any:
    record = snapshot.get(key)
    return record.value if record is not None and record.succeeded else None


class WeeklyAnalyticsAssembler(ResultAssembler):
    commit_key = SAVE_KEY
    gate_key = VALIDATION_KEY
    id_field = "week_id"

    def __init__(self, context: WeeklyAnalyticsContext):
        self.context = context

    def gate_verdict(self, gate_value: Any) -> Optional[BlockDecision]:
        if gate_value.get("should_generate") is not False:
            return None
        return BlockDecision(
            reason=gate_value.get("reason") or "Weekly data validation blocked generation",
            blocking_flags=tuple(gate_value.get("blocking_flags") or ()),
        )

    def success_payload(self, artifact_id: str, snapshot: dict[str, StoredResult]) -> tuple[dict, dict]:
        save = snapshot[SAVE_KEY].value
        normalization = _succeeded(snapshot, NORMALIZATION_KEY)
        if normalization and normalization.get("is_valid"):
            analytics = normalization["normalized_data"]
        else:
            generated = _succeeded(snapshot, ANALYTICS_KEY) or {}
            analytics = {
                "structured_analytics": generated.get("structured_analytics"),
                "human_summary": generated.get("human_summary", ""),
            }

        payload = {
            "week_id": artifact_id,
            "user_id": self.context.user_id,
            "s3_location": save.get("s3_location"),
            "analytics_data": analytics,
        }
        data = _succeeded(snapshot, FETCH_KEY)
        metadata = (
            build_save_metadata(self.context, data, analytics, normalization is not None)
            if data
            else {"normalization_applied": normalization is not None}
        )
        metadata["record_saved"] = save.get("record_saved", False)
        return payload, metadata


class WeeklyAnalyticsAgent(Agent):
    name = "weekly_analytics"
    min_completed_tools = 2

    def __init__(
        self,
        context: WeeklyAnalyticsContext,
        gateway,
        records: RecordStore,
        objects: ObjectStore,
        completion: CompletionClient,
        **kwargs,
    ):
        self.handlers = WeeklyAnalyticsTools(records, objects, completion)
        super().__init__(context, gateway, **kwargs)

    def build_tools(self) -> ToolSet:
        return ToolSet(self.handlers.tools())

    def build_assembler(self) -> ResultAssembler:
        return WeeklyAnalyticsAssembler(self.context)

    def system_prompt(self) -> str:
        return prompts.build_system_prompt(self.context)

    def initial_instruction(self) -> str:
        return prompts.build_initial_instruction(self.context)

    def build_retry_instruction(self, attempt: Attempt) -> str:
        return directive_instruction("weekly analytics", prompts.WORKFLOW_STEPS, attempt)

    def blocking_policy(self, tool_name: str, tool_input: dict, store: ResultStore) -> Optional[BlockDecision]:
        return enforce_validation_blocking(tool_name, tool_input, store)
