"""Tests for collaborator HTTP clients and the completion client."""

from datetime import date
from unittest.mock import Mock

import httpx
import pytest
import requests
from openai import APIConnectionError

from coachflow.collaborators import (
    CompletionClient,
    HttpObjectStore,
    HttpRecordStore,
    HttpSemanticSearch,
    parse_json_with_fallbacks,
)
from coachflow.exceptions import CollaboratorError

from conftest import make_completion


def _response(status: int = 200, body=None) -> Mock:
    response = Mock()
    response.status_code = status
    response.content = b"" if body is None else b"x"
    response.json.return_value = body
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} error")
    else:
        response.raise_for_status.return_value = None
    return response


def _session(response) -> Mock:
    session = Mock()
    session.request.return_value = response
    return session


class TestHttpRecordStore:
    """Tests for HttpRecordStore."""

    def test_query_workout_summaries(self):
        session = _session(_response(body={"items": [{"workout_id": "w1"}]}))
        store = HttpRecordStore("http://records/", session=session)

        items = store.query_workout_summaries("u1", date(2026, 10, 5), date(2026, 10, 11))

        assert items == [{"workout_id": "w1"}]
        method, url = session.request.call_args.args
        assert (method, url) == ("GET", "http://records/users/u1/workout-summaries")
        assert session.request.call_args.kwargs["params"] == {"from": "2026-10-05", "to": "2026-10-11"}

    def test_conversation_summaries_without_coaches(self):
        session = _session(_response(body={"items": [1]}))
        store = HttpRecordStore("http://records", session=session)
        assert store.query_conversation_summaries("u1", [], date(2026, 10, 1), date(2026, 10, 11)) == []
        session.request.assert_not_called()

    def test_missing_coach_config_is_none(self):
        store = HttpRecordStore("http://records", session=_session(_response(status=404)))
        assert store.get_coach_config("u1", "c1") is None

    def test_http_error_raises_collaborator_error(self):
        store = HttpRecordStore("http://records", session=_session(_response(status=500)))
        with pytest.raises(CollaboratorError) as exc_info:
            store.save_program({"user_id": "u1", "program_id": "p1"})
        assert exc_info.value.service == "record_store"

    def test_connection_error(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        store = HttpRecordStore("http://records", session=session)
        with pytest.raises(CollaboratorError, match="refused"):
            store.query_memories("u1")

    def test_invalid_json(self):
        response = _response(body={})
        response.json.side_effect = ValueError("bad json")
        store = HttpRecordStore("http://records", session=_session(response))
        with pytest.raises(CollaboratorError, match="invalid JSON"):
            store.query_memories("u1")


class TestObjectAndSearch:
    """Tests for the object store and semantic search clients."""

    def test_put_json_returns_key(self):
        session = _session(_response(body={"key": "programs/p1.json"}))
        objects = HttpObjectStore("http://objects", session=session)

        key = objects.put_json("programs", {"a": 1}, {"user_id": "u1"})

        assert key == "programs/p1.json"
        assert session.request.call_args.kwargs["json"] == {"body": {"a": 1}, "metadata": {"user_id": "u1"}}

    def test_search_query(self):
        session = _session(_response(body={"matches": [{"content": "x", "score": 0.8}]}))
        search = HttpSemanticSearch("http://search", session=session)

        matches = search.query("u1", "Program for: strength", top_k=8, min_score=0.7)

        assert matches == [{"content": "x", "score": 0.8}]
        assert session.request.call_args.kwargs["json"] == {
            "text": "Program for: strength",
            "top_k": 8,
            "min_score": 0.7,
        }


class TestParseJsonWithFallbacks:
    """Tests for tolerant JSON extraction."""

    def test_plain(self):
        assert parse_json_with_fallbacks('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert parse_json_with_fallbacks('```json\n{"a": 1}\n```') == {"a": 1}

    def test_embedded(self):
        assert parse_json_with_fallbacks('Here you go: {"a": {"b": 2}} hope it helps') == {"a": {"b": 2}}

    def test_no_object(self):
        with pytest.raises(ValueError):
            parse_json_with_fallbacks("no json here")


class TestCompletionClient:
    """Tests for CompletionClient."""

    def test_generate_json(self):
        client = Mock()
        client.chat.completions.create.return_value = make_completion(content='```json\n{"phases": []}\n```')
        completion = CompletionClient(client, model="m")

        assert completion.generate_json("prompt") == {"phases": []}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_unparseable_json(self):
        client = Mock()
        client.chat.completions.create.return_value = make_completion(content="sorry")
        with pytest.raises(CollaboratorError, match="No JSON object"):
            CompletionClient(client, model="m").generate_json("prompt")

    def test_api_error(self):
        client = Mock()
        client.chat.completions.create.side_effect = APIConnectionError(
            request=httpx.Request("POST", "http://localhost/v1/chat/completions")
        )
        with pytest.raises(CollaboratorError) as exc_info:
            CompletionClient(client, model="m").generate_text("prompt", system="sys")
        assert exc_info.value.service == "completion"
