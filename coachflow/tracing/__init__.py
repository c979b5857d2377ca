"""
Langfuse tracing integration for coachflow.

Provides observability for model calls, tool executions and run lifecycle.
"""

from .client import (
    TracingClient,
    init_tracing_client,
    get_tracing_client,
    shutdown_tracing,
)
from .context import RunTrace, ObservationContext

__all__ = [
    "TracingClient",
    "init_tracing_client",
    "get_tracing_client",
    "shutdown_tracing",
    "RunTrace",
    "ObservationContext",
]
