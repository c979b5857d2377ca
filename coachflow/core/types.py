"""
Message log and model response types.

Messages are frozen once built; the conversation loop only ever appends
new messages to its log.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class StopReason(str, Enum):
    """Why the backend stopped generating for one model call."""

    TOOL_USE = "tool_use"
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    CONTENT_FILTERED = "content_filtered"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    """A single tool invocation requested by the model."""

    id: str
    name: str
    input: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultBlock:
    """The outcome of one invocation, sent back to the model."""

    tool_use_id: str
    status: ResultStatus
    content: Any

    @property
    def is_error(self) -> bool:
        return self.status is ResultStatus.ERROR


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True)
class Message:
    role: Role
    content: tuple[ContentBlock, ...]

    @classmethod
    def user_text(cls, text: str) -> "Message":
        return cls(role=Role.USER, content=(TextBlock(text),))

    @property
    def text(self) -> str:
        """Concatenated text of every text block."""
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.content if isinstance(b, ToolResultBlock)]


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class ModelResponse:
    """One assistant turn as returned by the model gateway."""

    stop_reason: StopReason
    content: tuple[ContentBlock, ...]
    usage: Usage = field(default_factory=Usage)

    def to_message(self) -> Message:
        return Message(role=Role.ASSISTANT, content=self.content)

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]
