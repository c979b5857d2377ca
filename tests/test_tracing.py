"""
Tests for Langfuse tracing integration with SDK v3.

Tests cover:
- Client disabled states (credentials, failed auth check)
- Context manager no-ops when disabled
- Run trace lifecycle with a mocked Langfuse client
"""

from unittest.mock import MagicMock, patch

import pytest

from coachflow.models import LangfuseConfig
from coachflow.tracing import RunTrace, TracingClient, get_tracing_client, init_tracing_client
import coachflow.tracing.client as client_module


@pytest.fixture(autouse=True)
def reset_global_client():
    original = client_module._tracing_client
    yield
    client_module._tracing_client = original


class TestTracingClient:
    """Tests for TracingClient."""

    def test_client_disabled_without_credentials(self):
        """Test client is disabled when credentials not provided."""
        client = TracingClient(public_key="", secret_key="")
        assert client.enabled is False
        assert "credentials not configured" in client.error.lower()

    def test_client_disabled_with_partial_credentials(self):
        """Test client is disabled with only public key."""
        client = TracingClient(public_key="pk-test", secret_key="")
        assert client.enabled is False

    @patch("coachflow.tracing.client.Langfuse")
    def test_client_disabled_when_auth_check_fails(self, mock_langfuse_cls):
        """A failing auth_check disables tracing."""
        mock_langfuse_cls.return_value.auth_check.return_value = False
        client = TracingClient(public_key="pk", secret_key="sk", host="http://langfuse:3000")

        assert client.enabled is False
        assert "auth_check" in client.error
        assert client.client is None

    @patch("coachflow.tracing.client.Langfuse")
    def test_client_disabled_when_auth_check_raises(self, mock_langfuse_cls):
        """A connection error during auth_check disables tracing."""
        mock_langfuse_cls.return_value.auth_check.side_effect = ConnectionError("refused")
        client = TracingClient(public_key="pk", secret_key="sk")

        assert client.enabled is False
        assert "refused" in client.error

    @patch("coachflow.tracing.client.Langfuse")
    def test_client_enabled(self, mock_langfuse_cls):
        """Valid credentials and a passing auth check enable tracing."""
        mock_langfuse_cls.return_value.auth_check.return_value = True
        client = TracingClient(public_key="pk", secret_key="sk", host="http://langfuse:3000")

        assert client.enabled is True
        mock_langfuse_cls.assert_called_once_with(
            public_key="pk", secret_key="sk", debug=False, host="http://langfuse:3000"
        )
        client.flush()
        mock_langfuse_cls.return_value.flush.assert_called_once()

    def test_flush_and_shutdown_no_op_when_disabled(self):
        """Test flush and shutdown are no-ops when tracing disabled."""
        client = TracingClient()
        client.flush()
        client.shutdown()

    def test_init_from_config(self):
        """init_tracing_client stores the process-wide client."""
        client = init_tracing_client(LangfuseConfig())
        assert get_tracing_client() is client
        assert client.enabled is False


class TestRunTraceDisabled:
    """Context managers are no-ops without an enabled client."""

    def test_span_and_generation_yield_usable_contexts(self):
        trace = RunTrace(run_id="r1", client=TracingClient())
        trace.start(name="run")

        with trace.span(name="tool_fetch", input={}) as span:
            span.set_output({"ok": True})
            span.set_status("success")
        with trace.generation(name="model_call_1", model="m") as gen:
            gen.set_usage(10, 5)

        trace.end(output={"status": "success"})
        assert trace.enabled is False

    def test_uses_global_client_by_default(self):
        client_module._tracing_client = None
        assert RunTrace(run_id="r1").client is None


class TestRunTraceEnabled:
    """Run trace lifecycle against a mocked Langfuse client."""

    @patch("coachflow.tracing.client.Langfuse")
    def test_root_span_and_child_generation(self, mock_langfuse_cls):
        langfuse = mock_langfuse_cls.return_value
        langfuse.auth_check.return_value = True
        root = MagicMock(trace_id="trace_1", id="span_1")
        child = MagicMock()
        langfuse.start_as_current_observation.return_value.__enter__.side_effect = [root, child]

        trace = RunTrace(run_id="r1", user_id="user_1", client=TracingClient(public_key="pk", secret_key="sk"))
        trace.start(name="weekly_analytics", input={"instruction": "go"})
        with trace.generation(name="model_call_1", model="m") as gen:
            gen.set_usage(10, 5)
        trace.end(output={"status": "success"})

        root.update_trace.assert_called_once_with(user_id="user_1", session_id=None)
        child_kwargs = langfuse.start_as_current_observation.call_args_list[1].kwargs
        assert child_kwargs["as_type"] == "generation"
        assert child_kwargs["trace_context"] == {"trace_id": "trace_1", "parent_span_id": "span_1"}
        assert child.update.call_args.kwargs["usage_details"] == {"input": 10, "output": 5, "total": 15}
        langfuse.flush.assert_called()
