"""
Configuration loader for coachflow.

Loads configuration from YAML files with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError
from .models import (
    GatewayConfig,
    CompletionConfig,
    AgentConfig,
    ServiceEndpoint,
    CollaboratorsConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _parse_gateway_config(data: dict) -> GatewayConfig:
    """Parse inference gateway configuration from dict."""
    defaults = GatewayConfig()
    return GatewayConfig(
        base_url=data.get("base_url", defaults.base_url),
        api_key=data.get("api_key") or defaults.api_key,
        model=data.get("model", defaults.model),
        temperature=float(data.get("temperature", defaults.temperature)),
        max_tokens=int(data.get("max_tokens", defaults.max_tokens)),
        timeout=float(data.get("timeout", defaults.timeout)),
    )


def _parse_completion_config(data: dict) -> CompletionConfig:
    """Parse tool completion configuration from dict."""
    defaults = CompletionConfig()
    return CompletionConfig(
        model=data.get("model", defaults.model),
        temperature=float(data.get("temperature", defaults.temperature)),
        max_tokens=int(data.get("max_tokens", defaults.max_tokens)),
    )


def _parse_agent_config(data: dict) -> AgentConfig:
    """Parse run-level agent limits from dict."""
    defaults = AgentConfig()
    max_iterations = int(data.get("max_iterations", defaults.max_iterations))
    if max_iterations < 1:
        raise ConfigError(f"agent.max_iterations must be positive, got {max_iterations}")
    workers = int(data.get("max_parallel_workers", defaults.max_parallel_workers))
    if workers < 1:
        raise ConfigError(f"agent.max_parallel_workers must be positive, got {workers}")

    return AgentConfig(
        max_iterations=max_iterations,
        max_parallel_workers=workers,
        retry_enabled=_as_bool(data.get("retry_enabled", defaults.retry_enabled)),
        preview_chars=int(data.get("preview_chars", defaults.preview_chars)),
    )


def _parse_endpoint(data: dict, default: ServiceEndpoint) -> ServiceEndpoint:
    return ServiceEndpoint(
        url=data.get("url", default.url),
        timeout=int(data.get("timeout", default.timeout)),
    )


def _parse_collaborators_config(data: dict) -> CollaboratorsConfig:
    """Parse collaborator endpoints from dict."""
    defaults = CollaboratorsConfig()
    return CollaboratorsConfig(
        record_store=_parse_endpoint(
            data.get("record_store", {}), defaults.record_store
        ),
        object_store=_parse_endpoint(
            data.get("object_store", {}), defaults.object_store
        ),
        semantic_search=_parse_endpoint(
            data.get("semantic_search", {}), defaults.semantic_search
        ),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=str(data.get("level", "INFO")).upper(),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key", ""),
        secret_key=data.get("secret_key", ""),
        host=data.get("host", "https://cloud.langfuse.com"),
        debug=_as_bool(data.get("debug", False)),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified. A .env file in the working directory
    is loaded first so that ${VAR} references can pick up its values.

    Args:
        path: Path to the YAML configuration file. If None, uses the
              COACHFLOW_CONFIG_PATH env var or the default path
              (config/config.yaml). A missing default file yields defaults.
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist
        ConfigError: If the config is empty or invalid
    """
    global _app_config

    if _app_config is not None and not reload:
        return _app_config

    load_dotenv()

    explicit = path is not None or "COACHFLOW_CONFIG_PATH" in os.environ
    if path is None:
        path = os.environ.get("COACHFLOW_CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Configuration file not found at {config_path}")
        logger.warning(f"Config not found at {config_path}, using defaults")
        _app_config = AppConfig()
        return _app_config

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Configuration file {config_path} is not valid YAML: {e}") from e

    if raw_config is None:
        raise ConfigError(f"Configuration file {config_path} is empty")
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")

    raw_config = _substitute_env_vars_recursive(raw_config)

    try:
        app_config = AppConfig(
            version=str(raw_config.get("version", "1.0")),
            gateway=_parse_gateway_config(raw_config.get("gateway") or {}),
            completion=_parse_completion_config(raw_config.get("completion") or {}),
            agent=_parse_agent_config(raw_config.get("agent") or {}),
            collaborators=_parse_collaborators_config(
                raw_config.get("collaborators") or {}
            ),
            logging=_parse_logging_config(raw_config.get("logging") or {}),
            langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    _app_config = app_config
    return app_config


def reset_config_cache() -> None:
    """Clear the cached configuration (for tests and hot reloads)."""
    global _app_config
    _app_config = None
