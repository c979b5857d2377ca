"""
Run-scoped tracing context using Langfuse SDK v3.

One RunTrace covers one agent run: a root span for the run, a generation per
model call, and a span per tool execution. Children are linked to the root
through an explicit TraceContext rather than relying on OTEL context state,
because tool spans are opened from worker threads.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

from langfuse.types import TraceContext

from .client import TracingClient, get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class RunTrace:
    """Tracing state for a single agent run."""

    run_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    client: Optional[TracingClient] = None
    _context_manager: Any = field(default=None, repr=False)
    _root_span: Any = field(default=None, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def __post_init__(self):
        if self.client is None:
            self.client = get_tracing_client()

    @property
    def enabled(self) -> bool:
        return self.client is not None and self.client.enabled

    def start(self, name: str, input: Optional[Any] = None, metadata: Optional[dict] = None) -> None:
        """Open the root span for this run."""
        if not self.enabled or not self.client.client:
            return

        try:
            self._context_manager = self.client.client.start_as_current_observation(
                as_type="span",
                name=name,
                input=input,
                metadata={"run_id": self.run_id, **(metadata or {})},
            )
            self._root_span = self._context_manager.__enter__()
            self._root_span.update_trace(user_id=self.user_id, session_id=self.session_id)
            self._start_time = time.time()
        except Exception as e:
            logger.warning(f"[{self.run_id}] Failed to start trace: {e}")
            self._root_span = None

    def end(self, output: Optional[Any] = None, status: str = "success") -> None:
        """Close the root span and flush."""
        if not self._root_span:
            return

        try:
            duration_ms = (time.time() - self._start_time) * 1000
            self._root_span.update(
                output=output,
                metadata={"status": status, "duration_ms": round(duration_ms, 2)},
            )
            self._context_manager.__exit__(None, None, None)
            self.client.flush()
        except Exception as e:
            logger.warning(f"[{self.run_id}] Failed to end trace: {e}")
        finally:
            self._root_span = None

    def _trace_context(self) -> Optional[TraceContext]:
        trace_id = getattr(self._root_span, "trace_id", None)
        span_id = getattr(self._root_span, "id", None)
        if not trace_id or not span_id:
            return None
        return TraceContext(trace_id=trace_id, parent_span_id=span_id)

    @contextmanager
    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Generator["ObservationContext", None, None]:
        """A span around some unit of work, e.g. one tool execution."""
        obs = ObservationContext(
            client=self.client if self._root_span else None,
            as_type="span",
            name=name,
            input=input,
            metadata=metadata,
            trace_context=self._trace_context() if self._root_span else None,
        )
        obs.start()
        try:
            yield obs
        finally:
            obs.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        model_parameters: Optional[dict] = None,
    ) -> Generator["ObservationContext", None, None]:
        """A generation around one model call."""
        obs = ObservationContext(
            client=self.client if self._root_span else None,
            as_type="generation",
            name=name,
            input=input,
            model=model,
            model_parameters=model_parameters,
            trace_context=self._trace_context() if self._root_span else None,
        )
        obs.start()
        try:
            yield obs
        finally:
            obs.end()


@dataclass
class ObservationContext:
    """A span or generation; all setters are safe to call when disabled."""

    client: Optional[TracingClient]
    as_type: str
    name: str
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    model: Optional[str] = None
    model_parameters: Optional[dict] = None
    trace_context: Optional[TraceContext] = None
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _usage: Optional[dict] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def start(self) -> None:
        if self.client is None or not self.client.enabled or not self.client.client:
            return

        kwargs: dict[str, Any] = {
            "trace_context": self.trace_context,
            "as_type": self.as_type,
            "name": self.name,
            "input": self.input,
            "metadata": self.metadata,
        }
        if self.as_type == "generation":
            kwargs["model"] = self.model
            kwargs["model_parameters"] = self.model_parameters

        try:
            self._start_time = time.time()
            self._context_manager = self.client.client.start_as_current_observation(**kwargs)
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning(f"Failed to start {self.as_type} '{self.name}': {e}")
            self._observation = None

    def end(self) -> None:
        if not self._observation:
            return

        try:
            duration_ms = (time.time() - self._start_time) * 1000
            update_kwargs: dict[str, Any] = {
                "metadata": {"status": self._status, "duration_ms": round(duration_ms, 2)},
            }
            if self._output is not None:
                update_kwargs["output"] = self._output
            if self._usage:
                update_kwargs["usage_details"] = self._usage
            self._observation.update(**update_kwargs)
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"Failed to end {self.as_type} '{self.name}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status

    def set_usage(self, prompt_tokens: int, completion_tokens: int) -> None:
        self._usage = {
            "input": prompt_tokens,
            "output": completion_tokens,
            "total": prompt_tokens + completion_tokens,
        }
