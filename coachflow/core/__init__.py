"""
Tool-orchestration engine shared by every agent.

Model gateway, tool coordinator, conversation loop, result assembler and
retry supervisor.
"""

from .types import (
    Role,
    StopReason,
    ResultStatus,
    TextBlock,
    ToolUseBlock,
    ToolResultBlock,
    Message,
    ModelResponse,
    Usage,
)
from .store import ResultStore, StoredResult
from .tools import Tool, ToolContext, ToolOutput, ToolSet
from .gateway import ModelGateway
from .coordinator import BlockDecision, ToolCoordinator
from .loop import ConversationLoop, LoopResult
from .assembler import Success, Skipped, Failed, RunOutcome, ResultAssembler, outcome_to_dict
from .retry import RetrySupervisor, Attempt
from .agent import Agent

__all__ = [
    "Role",
    "StopReason",
    "ResultStatus",
    "TextBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "Message",
    "ModelResponse",
    "Usage",
    "ResultStore",
    "StoredResult",
    "Tool",
    "ToolContext",
    "ToolOutput",
    "ToolSet",
    "ModelGateway",
    "BlockDecision",
    "ToolCoordinator",
    "ConversationLoop",
    "LoopResult",
    "Success",
    "Skipped",
    "Failed",
    "RunOutcome",
    "ResultAssembler",
    "outcome_to_dict",
    "RetrySupervisor",
    "Attempt",
    "Agent",
]
