"""Tests for YAML configuration loading."""

import pytest

from coachflow.config_loader import load_app_config, reset_config_cache, resolve_env_vars
from coachflow.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_config_cache(monkeypatch):
    """Each test loads configuration from scratch."""
    monkeypatch.delenv("COACHFLOW_CONFIG_PATH", raising=False)
    monkeypatch.setattr("coachflow.config_loader.load_dotenv", lambda: None)
    reset_config_cache()
    yield
    reset_config_cache()


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestEnvInterpolation:
    """Tests for ${VAR} and ${VAR:-default} resolution."""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("COACHFLOW_TEST_URL", "http://llm:9000/v1")
        assert resolve_env_vars("${COACHFLOW_TEST_URL}") == "http://llm:9000/v1"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("COACHFLOW_TEST_UNSET", raising=False)
        assert resolve_env_vars("${COACHFLOW_TEST_UNSET:-fallback}") == "fallback"
        assert resolve_env_vars("x${COACHFLOW_TEST_UNSET}y") == "xy"


class TestLoadAppConfig:
    """Tests for load_app_config()."""

    def test_loads_sections(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COACHFLOW_TEST_MODEL", "local-model")
        path = _write(
            tmp_path,
            """
gateway:
  base_url: http://llm:8000/v1
  model: ${COACHFLOW_TEST_MODEL}
  timeout: 60
agent:
  max_iterations: 12
  retry_enabled: "false"
collaborators:
  record_store:
    url: http://records:8100
logging:
  level: debug
""",
        )
        config = load_app_config(path)

        assert config.gateway.base_url == "http://llm:8000/v1"
        assert config.gateway.model == "local-model"
        assert config.gateway.timeout == 60
        assert config.agent.max_iterations == 12
        assert config.agent.retry_enabled is False
        assert config.agent.max_parallel_workers == 4
        assert config.collaborators.record_store.url == "http://records:8100"
        assert config.collaborators.object_store.url == "http://localhost:8100/objects"
        assert config.logging.level == "DEBUG"
        assert config.langfuse.is_configured is False

    def test_cached_until_reload(self, tmp_path):
        path = _write(tmp_path, "agent:\n  max_iterations: 5\n")
        first = load_app_config(path)
        assert load_app_config() is first

        _write(tmp_path, "agent:\n  max_iterations: 7\n")
        assert load_app_config(path, reload=True).agent.max_iterations == 7

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_app_config(str(tmp_path / "missing.yaml"))

    def test_missing_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COACHFLOW_CONFIG_PATH", str(tmp_path / "missing.yaml"))
        with pytest.raises(FileNotFoundError):
            load_app_config()

    def test_missing_default_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr("coachflow.config_loader.DEFAULT_CONFIG_PATH", tmp_path / "none.yaml")
        config = load_app_config()
        assert config.agent.max_iterations == 20

    def test_empty_file(self, tmp_path):
        with pytest.raises(ConfigError, match="empty"):
            load_app_config(_write(tmp_path, ""))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="not valid YAML"):
            load_app_config(_write(tmp_path, "gateway: [unclosed"))

    def test_non_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="mapping"):
            load_app_config(_write(tmp_path, "- a\n- b\n"))

    def test_non_positive_iterations(self, tmp_path):
        with pytest.raises(ConfigError, match="max_iterations"):
            load_app_config(_write(tmp_path, "agent:\n  max_iterations: 0\n"))

    def test_bad_number(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_app_config(_write(tmp_path, "gateway:\n  timeout: soon\n"))

    def test_shipped_config_loads(self, monkeypatch):
        """The config file in the repository parses with an empty environment."""
        config = load_app_config(reload=True)
        assert config.agent.max_parallel_workers == 4
        assert config.collaborators.semantic_search.timeout == 30
