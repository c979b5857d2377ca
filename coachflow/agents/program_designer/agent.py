"""
Program designer agent.

Builds a multi-phase training program from collected requirements,
generating each phase's workouts in parallel.
"""

import logging
from typing import Any, Optional

from ...collaborators import CompletionClient, ObjectStore, RecordStore, SemanticSearch
from ...core import Agent, BlockDecision, ResultAssembler, ResultStore, StoredResult, ToolSet
from ...core.retry import Attempt, directive_instruction
from . import prompts
from .blocking import enforce_save_blocking
from .context import ProgramDesignerContext
from .tools import (
    NORMALIZATION_KEY,
    PHASE_STRUCTURE_KEY,
    PHASE_WORKOUTS_PREFIX,
    PRUNING_KEY,
    SAVE_KEY,
    SUMMARY_KEY,
    VALIDATION_KEY,
    ProgramDesignerTools,
)

logger = logging.getLogger(__name__)

GENERATION_METHOD = "agent_v2"


def _succeeded(snapshot: dict[str, StoredResult], key: str) -> Any:
    record = snapshot.get(key)
    return record.value if record is not None and record.succeeded else None


class ProgramDesignerAssembler(ResultAssembler):
    commit_key = SAVE_KEY
    gate_key = VALIDATION_KEY
    id_field = "program_id"

    def __init__(self, context: ProgramDesignerContext):
        self.context = context

    def gate_verdict(self, gate_value: Any) -> Optional[BlockDecision]:
        if gate_value.get("is_valid") is not False:
            return None
        issues = list(gate_value.get("validation_issues") or [])
        return BlockDecision(
            reason=f"Program validation failed: {', '.join(issues) or 'unknown issues'}",
            blocking_flags=tuple(issues),
        )

    def success_payload(self, artifact_id: str, snapshot: dict[str, StoredResult]) -> tuple[dict, dict]:
        save = snapshot[SAVE_KEY].value
        validation = _succeeded(snapshot, VALIDATION_KEY) or {}
        normalization = _succeeded(snapshot, NORMALIZATION_KEY)
        if normalization and normalization.get("is_valid"):
            program = normalization["normalized_program"]
        else:
            program = validation.get("program") or {}
        structure = _succeeded(snapshot, PHASE_STRUCTURE_KEY) or {}
        summary = (_succeeded(snapshot, SUMMARY_KEY) or {}).get("summary", "")

        payload = {
            "program_id": artifact_id,
            "program_name": program.get("name"),
            "total_days": program.get("total_days"),
            "phases": len(program.get("phases") or structure.get("phases") or []),
            "total_workouts": save.get("total_workouts"),
            "training_frequency": program.get("training_frequency"),
            "summary": summary,
            "s3_detail_key": save.get("s3_key"),
        }
        pruning = _succeeded(snapshot, PRUNING_KEY) or {}
        metadata = {
            "normalization_applied": normalization is not None,
            "pruning_applied": bool(pruning.get("pruned")),
            "phase_results": sum(1 for key in snapshot if key.startswith(PHASE_WORKOUTS_PREFIX)),
            "search_record_id": save.get("search_record_id"),
            "generation_method": GENERATION_METHOD,
        }
        return payload, metadata


class ProgramDesignerAgent(Agent):
    name = "program_designer"
    min_completed_tools = 3

    def __init__(
        self,
        context: ProgramDesignerContext,
        gateway,
        records: RecordStore,
        objects: ObjectStore,
        search: SemanticSearch,
        completion: CompletionClient,
        **kwargs,
    ):
        self.handlers = ProgramDesignerTools(records, objects, search, completion)
        super().__init__(context, gateway, **kwargs)

    def build_tools(self) -> ToolSet:
        return ToolSet(self.handlers.tools())

    def build_assembler(self) -> ResultAssembler:
        return ProgramDesignerAssembler(self.context)

    def system_prompt(self) -> str:
        return prompts.build_system_prompt(self.context)

    def initial_instruction(self) -> str:
        return prompts.build_initial_instruction(self.context)

    def build_retry_instruction(self, attempt: Attempt) -> str:
        return directive_instruction("program design", prompts.WORKFLOW_STEPS, attempt)

    def blocking_policy(self, tool_name: str, tool_input: dict, store: ResultStore) -> Optional[BlockDecision]:
        return enforce_save_blocking(tool_name, tool_input, store)
