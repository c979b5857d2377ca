"""
Model gateway.

Sends the message log and tool schemas to an OpenAI-compatible chat
completions backend and translates the reply into a ModelResponse. The
OpenAI client is injected so that each run (and each test) owns its own.
"""

import json
import logging
from typing import Optional

from openai import APIError, OpenAI

from ..exceptions import GatewayError
from ..models import GatewayConfig
from ..tracing import RunTrace
from .types import (
    Message,
    ModelResponse,
    Role,
    StopReason,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Usage,
)

logger = logging.getLogger(__name__)

FINISH_REASONS = {
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "stop": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "content_filter": StopReason.CONTENT_FILTERED,
}


def to_chat_messages(messages: list[Message], system_prompt: Optional[str] = None) -> list[dict]:
    """Convert the message log into chat-completions format."""
    chat: list[dict] = []
    if system_prompt:
        chat.append({"role": "system", "content": system_prompt})

    for message in messages:
        if message.role is Role.ASSISTANT:
            entry: dict = {"role": "assistant", "content": message.text or None}
            if message.tool_uses:
                entry["tool_calls"] = [
                    {
                        "id": use.id,
                        "type": "function",
                        "function": {
                            "name": use.name,
                            "arguments": json.dumps(use.input),
                        },
                    }
                    for use in message.tool_uses
                ]
            chat.append(entry)
            continue

        for result in message.tool_results:
            chat.append(
                {
                    "role": "tool",
                    "tool_call_id": result.tool_use_id,
                    "content": _result_content(result),
                }
            )
        if message.text:
            chat.append({"role": "user", "content": message.text})

    return chat


def _result_content(result: ToolResultBlock) -> str:
    payload = {"status": result.status.value, "result": result.content}
    return json.dumps(payload, default=str)


def _parse_arguments(raw: Optional[str], tool_name: str) -> dict:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Invalid JSON arguments for tool {tool_name}: {raw[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class ModelGateway:
    """Single entry point to the inference backend for one run."""

    def __init__(
        self,
        client: OpenAI,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        trace: Optional[RunTrace] = None,
    ):
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.trace = trace

    @classmethod
    def from_config(cls, config: GatewayConfig, trace: Optional[RunTrace] = None) -> "ModelGateway":
        client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=config.timeout,
        )
        return cls(
            client,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            trace=trace,
        )

    def complete(
        self,
        messages: list[Message],
        tools: list[dict],
        system_prompt: Optional[str] = None,
        step: int = 0,
    ) -> ModelResponse:
        """
        Run one model call over the full message log.

        Raises:
            GatewayError: If the backend call fails or returns no choices.
        """
        create_kwargs = {
            "model": self.model,
            "messages": to_chat_messages(messages, system_prompt),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            create_kwargs["tools"] = tools

        if self.trace is None:
            return self._call(create_kwargs)

        with self.trace.generation(
            name=f"model_call_{step}",
            model=self.model,
            input=create_kwargs["messages"],
            model_parameters={"temperature": self.temperature, "max_tokens": self.max_tokens},
        ) as gen:
            try:
                response = self._call(create_kwargs)
            except GatewayError:
                gen.set_status("error")
                raise
            gen.set_output({"stop_reason": response.stop_reason.value, "text": response.text})
            gen.set_usage(response.usage.prompt_tokens, response.usage.completion_tokens)
            return response

    def _call(self, create_kwargs: dict) -> ModelResponse:
        try:
            completion = self._client.chat.completions.create(**create_kwargs)
        except APIError as e:
            raise GatewayError(f"Inference call failed: {e}", cause=e) from e

        if not completion.choices:
            raise GatewayError("Inference backend returned no choices")

        choice = completion.choices[0]
        message = choice.message
        blocks: list = []
        if message.content:
            blocks.append(TextBlock(message.content))
        for call in message.tool_calls or []:
            blocks.append(
                ToolUseBlock(
                    id=call.id,
                    name=call.function.name,
                    input=_parse_arguments(call.function.arguments, call.function.name),
                )
            )

        stop_reason = FINISH_REASONS.get(choice.finish_reason, StopReason.END_TURN)
        # Some OpenAI-compatible servers report "stop" alongside tool calls.
        if message.tool_calls and stop_reason is StopReason.END_TURN:
            stop_reason = StopReason.TOOL_USE

        usage = Usage()
        if completion.usage is not None:
            usage = Usage(
                prompt_tokens=completion.usage.prompt_tokens or 0,
                completion_tokens=completion.usage.completion_tokens or 0,
            )

        return ModelResponse(stop_reason=stop_reason, content=tuple(blocks), usage=usage)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()
