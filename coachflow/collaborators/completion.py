"""
Single-shot completion client used by generation tools.

Unlike the model gateway, these calls carry no tools and no conversation:
one prompt in, one JSON document (or text) out.
"""

import json
import logging
import re
from typing import Optional

from openai import APIError, OpenAI

from ..exceptions import CollaboratorError
from ..models import CompletionConfig, GatewayConfig

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_json_with_fallbacks(text: str) -> dict:
    """
    Parse a JSON object out of model output.

    Tries the raw text, then the text without markdown fences, then the
    outermost {...} span.

    Raises:
        ValueError: If no JSON object can be recovered.
    """
    candidates = [text, _FENCE.sub("", text.strip())]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ValueError(f"No JSON object found in response: {text[:200]!r}")


class CompletionClient:
    """OpenAI-compatible client for one-prompt generation calls."""

    def __init__(
        self,
        client: OpenAI,
        model: str,
        temperature: float = 0.4,
        max_tokens: int = 8192,
    ):
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, gateway: GatewayConfig, completion: CompletionConfig) -> "CompletionClient":
        client = OpenAI(
            base_url=gateway.base_url,
            api_key=gateway.api_key,
            timeout=gateway.timeout,
        )
        return cls(
            client,
            model=completion.model,
            temperature=completion.temperature,
            max_tokens=completion.max_tokens,
        )

    def generate_text(self, prompt: str, system: Optional[str] = None, json_mode: bool = False) -> str:
        messages: list[dict] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        create_kwargs: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if json_mode:
            create_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self._client.chat.completions.create(**create_kwargs)
        except APIError as e:
            logger.error(f"Completion call failed: {e}")
            raise CollaboratorError("completion", str(e)) from e

        if not response.choices:
            raise CollaboratorError("completion", "no choices returned")
        return response.choices[0].message.content or ""

    def close(self) -> None:
        self._client.close()

    def generate_json(self, prompt: str, system: Optional[str] = None) -> dict:
        """Generate and parse a JSON object."""
        text = self.generate_text(prompt, system=system, json_mode=True)
        try:
            return parse_json_with_fallbacks(text)
        except ValueError as e:
            raise CollaboratorError("completion", str(e)) from e
