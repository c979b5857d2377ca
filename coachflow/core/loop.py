"""
Conversation loop.

Drives gateway calls and tool execution until the model produces a final
answer or the iteration ceiling is reached. Owns the append-only message log
for one run attempt.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .coordinator import ToolCoordinator
from .gateway import ModelGateway
from .tools import ToolSet
from .types import Message, Role, StopReason, ToolResultBlock

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 20

MAX_TOKENS_FALLBACK = "Response exceeded token limit."
CONTENT_FILTERED_FALLBACK = "Response was filtered due to content policy."


@dataclass
class LoopResult:
    """Final text of a loop run plus how it ended."""

    text: str
    stop_reason: Optional[StopReason]
    iterations: int
    hit_ceiling: bool = False
    tool_calls: int = 0


@dataclass
class ConversationLog:
    """Append-only sequence of messages."""

    _messages: list[Message] = field(default_factory=list)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


class ConversationLoop:
    """
    Reasoning loop over one gateway and one coordinator.

    The log persists across calls to run(), so a second run() continues the
    same conversation with the prior tool context in view.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        coordinator: ToolCoordinator,
        tools: ToolSet,
        system_prompt: Optional[str] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        run_id: str = "",
    ):
        self.gateway = gateway
        self.coordinator = coordinator
        self.tools = tools
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.run_id = run_id
        self.log = ConversationLog()

    def run(self, instruction: str) -> LoopResult:
        """
        Run the loop for one instruction.

        Never raises for an incomplete workflow: hitting the ceiling returns
        the best text collected so far. GatewayError propagates.
        """
        id_prefix = f"[{self.run_id}] " if self.run_id else ""
        self.log.append(Message.user_text(instruction))
        schemas = self.tools.schemas()
        last_text = ""
        tool_calls = 0

        for iteration in range(1, self.max_iterations + 1):
            logger.info(f"{id_prefix}Iteration {iteration}/{self.max_iterations}")
            response = self.gateway.complete(
                self.log.messages,
                schemas,
                system_prompt=self.system_prompt,
                step=iteration,
            )
            if response.text:
                last_text = response.text

            if response.stop_reason is StopReason.TOOL_USE and response.tool_uses:
                self.log.append(response.to_message())
                results = self.coordinator.execute(response.tool_uses)
                tool_calls += len(results)
                self.log.append(Message(role=Role.USER, content=tuple(results)))
                continue

            if response.stop_reason is StopReason.MAX_TOKENS:
                logger.warning(f"{id_prefix}Model hit max tokens")
                return LoopResult(
                    text=response.text or MAX_TOKENS_FALLBACK,
                    stop_reason=response.stop_reason,
                    iterations=iteration,
                    tool_calls=tool_calls,
                )

            if response.stop_reason is StopReason.CONTENT_FILTERED:
                logger.warning(f"{id_prefix}Model output was content filtered")
                return LoopResult(
                    text=response.text or CONTENT_FILTERED_FALLBACK,
                    stop_reason=response.stop_reason,
                    iterations=iteration,
                    tool_calls=tool_calls,
                )

            # end_turn, stop_sequence, or tool_use with no tool calls
            self.log.append(response.to_message())
            logger.info(
                f"{id_prefix}Loop finished after {iteration} iteration(s) ({response.stop_reason.value})"
            )
            return LoopResult(
                text=response.text,
                stop_reason=response.stop_reason,
                iterations=iteration,
                tool_calls=tool_calls,
            )

        logger.warning(f"{id_prefix}Reached iteration ceiling ({self.max_iterations}) without a final answer")
        return LoopResult(
            text=last_text,
            stop_reason=None,
            iterations=self.max_iterations,
            hit_ceiling=True,
            tool_calls=tool_calls,
        )

    def orphaned_results(self) -> list[ToolResultBlock]:
        """Result blocks whose id is not in the immediately preceding assistant message."""
        orphans: list[ToolResultBlock] = []
        messages = self.log.messages
        for i, message in enumerate(messages):
            results = message.tool_results
            if not results:
                continue
            previous = messages[i - 1] if i > 0 else None
            ids = (
                {u.id for u in previous.tool_uses}
                if previous is not None and previous.role is Role.ASSISTANT
                else set()
            )
            orphans.extend(r for r in results if r.tool_use_id not in ids)
        return orphans
