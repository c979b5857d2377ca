"""
Configuration models for coachflow.
"""

from .config import (
    GatewayConfig,
    CompletionConfig,
    AgentConfig,
    ServiceEndpoint,
    CollaboratorsConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    "GatewayConfig",
    "CompletionConfig",
    "AgentConfig",
    "ServiceEndpoint",
    "CollaboratorsConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
