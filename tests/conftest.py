"""
Pytest configuration and fixtures for coachflow tests.

Provides a scripted OpenAI backend for the model gateway, call-counting stub
tools and in-memory collaborator fakes.
"""

import itertools
import json
import threading
import time
from datetime import date
from typing import Callable, Optional
from unittest.mock import Mock

import pytest

from coachflow.core import ModelGateway, ResultStore, Tool, ToolContext
from coachflow.exceptions import CollaboratorError


# Scripted backend


def make_tool_call(call_id: str, name: str, arguments: Optional[dict] = None) -> Mock:
    """Mock of an OpenAI tool call object."""
    function = Mock()
    function.name = name
    function.arguments = json.dumps(arguments or {})
    call = Mock()
    call.id = call_id
    call.function = function
    return call


def make_completion(
    content: Optional[str] = None,
    tool_calls: Optional[list] = None,
    finish_reason: Optional[str] = None,
) -> Mock:
    """
    Mock chat completion.

    tool_calls is a list of (id, name, arguments) tuples. finish_reason
    defaults to "tool_calls" when tool calls are present, else "stop".
    """
    message = Mock()
    message.content = content
    message.tool_calls = [make_tool_call(*tc) for tc in tool_calls] if tool_calls else None
    if finish_reason is None:
        finish_reason = "tool_calls" if tool_calls else "stop"
    completion = Mock()
    completion.choices = [Mock(message=message, finish_reason=finish_reason)]
    completion.usage = Mock(prompt_tokens=10, completion_tokens=5)
    return completion


def tool_turn(*calls) -> Mock:
    """One assistant turn requesting the given (name, arguments) calls."""
    counter = tool_turn.ids
    return make_completion(
        tool_calls=[(f"call_{next(counter)}", name, args) for name, args in calls]
    )


tool_turn.ids = itertools.count(1)


def final_turn(text: str) -> Mock:
    return make_completion(content=text)


def scripted_gateway(responses: list) -> ModelGateway:
    """ModelGateway over a mock OpenAI client returning responses in order."""
    client = Mock()
    client.chat.completions.create.side_effect = list(responses)
    return ModelGateway(client, model="test-model")


@pytest.fixture
def make_gateway() -> Callable[[list], ModelGateway]:
    return scripted_gateway


# Stub tools


class CountingHandler:
    """Tool handler that records every call and returns a fixed result."""

    def __init__(self, result=None, error: Optional[Exception] = None, delay: float = 0.0):
        self.result = {"ok": True} if result is None else result
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def __call__(self, tool_input: dict, context: ToolContext):
        with self._lock:
            self.calls.append(tool_input)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def call_count(self) -> int:
        return len(self.calls)


def stub_tool(name: str, handler=None, key_fn=None, parallelizable: bool = False) -> Tool:
    return Tool(
        name=name,
        description=f"Stub tool {name}",
        input_schema={"type": "object", "properties": {}},
        handler=handler or CountingHandler(),
        key_fn=key_fn,
        parallelizable=parallelizable,
    )


@pytest.fixture
def store() -> ResultStore:
    return ResultStore()


@pytest.fixture
def tool_context(store) -> ToolContext:
    return ToolContext(run_id="test_run", data=None, _store=store)


# Collaborator fakes


class FakeRecordStore:
    """In-memory RecordStore."""

    def __init__(
        self,
        workouts: Optional[list[dict]] = None,
        conversations: Optional[list[dict]] = None,
        memories: Optional[list[dict]] = None,
        coach_config: Optional[dict] = None,
        user_profile: Optional[dict] = None,
        fail_saves: bool = False,
    ):
        self.workouts = workouts or []
        self.conversations = conversations or []
        self.memories = memories or []
        self.coach_config = coach_config
        self.user_profile = user_profile
        self.fail_saves = fail_saves
        self.saved_analytics: list[dict] = []
        self.saved_programs: list[dict] = []

    def query_workout_summaries(self, user_id: str, start: date, end: date) -> list[dict]:
        return [
            w for w in self.workouts
            if start <= date.fromisoformat(w["date"]) <= end
        ]

    def query_conversation_summaries(self, user_id, coach_ids, start, end) -> list[dict]:
        if not coach_ids:
            return []
        return list(self.conversations)

    def query_memories(self, user_id: str, limit: int = 20) -> list[dict]:
        return self.memories[:limit]

    def get_coach_config(self, user_id: str, coach_id: str) -> Optional[dict]:
        return self.coach_config

    def get_user_profile(self, user_id: str) -> Optional[dict]:
        return self.user_profile

    def save_weekly_analytics(self, record: dict) -> None:
        if self.fail_saves:
            raise CollaboratorError("record_store", "connection refused")
        self.saved_analytics.append(record)

    def save_program(self, program: dict) -> None:
        if self.fail_saves:
            raise CollaboratorError("record_store", "connection refused")
        self.saved_programs.append(program)


class FakeObjectStore:
    def __init__(self):
        self.objects: dict[str, dict] = {}

    def put_json(self, prefix: str, payload: dict, metadata: dict) -> str:
        key = f"{prefix}/{len(self.objects) + 1}.json"
        self.objects[key] = {"body": payload, "metadata": metadata}
        return key


class FakeSemanticSearch:
    def __init__(self, matches: Optional[list[dict]] = None, fail: bool = False):
        self.matches = matches or []
        self.fail = fail
        self.queries: list[str] = []
        self.upserts: list[dict] = []

    def query(self, user_id, text, top_k=8, min_score=0.7) -> list[dict]:
        if self.fail:
            raise CollaboratorError("semantic_search", "index unavailable")
        self.queries.append(text)
        return self.matches

    def upsert(self, user_id, record_id, text, metadata) -> str:
        if self.fail:
            raise CollaboratorError("semantic_search", "index unavailable")
        self.upserts.append({"id": record_id, "text": text, "metadata": metadata})
        return record_id


class FakeCompletion:
    """
    CompletionClient double.

    json_responder maps a prompt to the JSON document to return; text is
    returned by generate_text.
    """

    def __init__(self, json_responder: Optional[Callable[[str], dict]] = None, text: str = "A summary."):
        self.json_responder = json_responder or (lambda prompt: {})
        self.text = text
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def generate_json(self, prompt: str, system: Optional[str] = None) -> dict:
        with self._lock:
            self.prompts.append(prompt)
        return self.json_responder(prompt)

    def generate_text(self, prompt: str, system: Optional[str] = None, json_mode: bool = False) -> str:
        with self._lock:
            self.prompts.append(prompt)
        return self.text


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def semantic_search() -> FakeSemanticSearch:
    return FakeSemanticSearch(matches=[{"content": "Squats felt strong last block.", "score": 0.9}])
