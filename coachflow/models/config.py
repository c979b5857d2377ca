"""
Configuration models for coachflow.

Defines dataclasses for the YAML configuration file.
"""

from dataclasses import dataclass, field


@dataclass
class GatewayConfig:
    """Configuration for the inference backend used by the reasoning loop."""
    base_url: str = "http://localhost:8001/v1"
    api_key: str = "not-needed"
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 4096
    timeout: float = 120.0


@dataclass
class CompletionConfig:
    """Configuration for single-shot JSON generation inside tools."""
    model: str = "gpt-4o-mini"
    temperature: float = 0.4
    max_tokens: int = 8192


@dataclass
class AgentConfig:
    """Run-level limits shared by every agent."""
    max_iterations: int = 20
    max_parallel_workers: int = 4
    retry_enabled: bool = True
    preview_chars: int = 200


@dataclass
class ServiceEndpoint:
    """An HTTP collaborator endpoint."""
    url: str = ""
    timeout: int = 30


@dataclass
class CollaboratorsConfig:
    """Endpoints for the persistence and search collaborators."""
    record_store: ServiceEndpoint = field(
        default_factory=lambda: ServiceEndpoint(url="http://localhost:8100/records")
    )
    object_store: ServiceEndpoint = field(
        default_factory=lambda: ServiceEndpoint(url="http://localhost:8100/objects")
    )
    semantic_search: ServiceEndpoint = field(
        default_factory=lambda: ServiceEndpoint(url="http://localhost:8200/search")
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    collaborators: CollaboratorsConfig = field(default_factory=CollaboratorsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
