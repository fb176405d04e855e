"""
Tests for configuration, environment handling and exceptions.
"""

import pytest

from trigflow.core.config import DEFAULT_TIMEZONE, TrigflowConfig, configure, get_config
from trigflow.core.env import EnvManager
from trigflow.core.exceptions import (
    ConfigurationError,
    ImmutableFieldError,
    InvalidScheduleError,
    MissingDependencyError,
    NotFoundError,
    ProcessNotDeployedError,
    TriggerNotFoundError,
    TrigflowError,
)
from trigflow.storage.memory import InMemoryExecutionStorage, InMemoryTriggerStorage


class TestTrigflowConfig:
    """Tests for TrigflowConfig defaults and validation."""

    def test_defaults(self):
        config = TrigflowConfig()

        assert isinstance(config.trigger_storage, InMemoryTriggerStorage)
        assert isinstance(config.execution_storage, InMemoryExecutionStorage)
        assert config.run_storage is not None
        assert config.default_timezone == DEFAULT_TIMEZONE == "Europe/Moscow"
        assert config.reconcile_interval_seconds == 300.0
        assert config.audit_cache_size == 1000
        assert config.metrics is True

    @pytest.mark.parametrize("field", ["reconcile_interval_seconds", "audit_cache_size"])
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValueError, match=field):
            TrigflowConfig(**{field: 0})

    def test_global_config(self):
        config = TrigflowConfig(default_timezone="UTC")
        configure(config)
        assert get_config() is config

    def test_get_config_creates_default(self):
        assert get_config() is get_config()

    def test_unknown_storage_url(self):
        with pytest.raises(ValueError, match="Unknown storage URL"):
            TrigflowConfig._parse_storage_url("postgres://db")


class TestConfigFromEnv:
    """Tests for TrigflowConfig.from_env."""

    def test_reads_variables(self, monkeypatch):
        monkeypatch.setenv("TRIGFLOW_DEFAULT_TIMEZONE", "UTC")
        monkeypatch.setenv("TRIGFLOW_RECONCILE_INTERVAL", "60")
        monkeypatch.setenv("TRIGFLOW_ORCHESTRATOR_TIMEOUT", "5.5")
        monkeypatch.setenv("TRIGFLOW_AUDIT_CACHE_SIZE", "10")
        monkeypatch.setenv("TRIGFLOW_METRICS", "false")

        config = TrigflowConfig.from_env(load_dotenv=False)

        assert config.default_timezone == "UTC"
        assert config.reconcile_interval_seconds == 60.0
        assert config.orchestrator_timeout_seconds == 5.5
        assert config.audit_cache_size == 10
        assert config.metrics is False

    def test_invalid_numbers_fall_back(self, monkeypatch):
        monkeypatch.setenv("TRIGFLOW_RECONCILE_INTERVAL", "soon")
        assert TrigflowConfig.from_env(load_dotenv=False).reconcile_interval_seconds == 300.0

    def test_sqlite_url(self, monkeypatch, tmp_path):
        pytest.importorskip("aiosqlite")
        from trigflow.storage.sqlite import SQLiteTriggerStorage

        monkeypatch.setenv("TRIGFLOW_STORAGE_URL", f"sqlite:///{tmp_path / 'triggers.db'}")
        config = TrigflowConfig.from_env(load_dotenv=False)

        assert isinstance(config.trigger_storage, SQLiteTriggerStorage)


class TestConfigFromFile:
    """Tests for YAML configuration files."""

    def test_loads_sections(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRIGFLOW_TEST_TZ", "Asia/Tokyo")
        path = tmp_path / "trigflow.yaml"
        path.write_text(
            "scheduler:\n"
            "  default_timezone: ${TRIGFLOW_TEST_TZ}\n"
            "  reconcile_interval_seconds: 120\n"
            "dispatch:\n"
            "  orchestrator_timeout_seconds: 10\n"
            "  audit_cache_size: 500\n"
            "observability:\n"
            "  metrics: 'no'\n"
        )

        config = TrigflowConfig.from_file(path)

        assert config.default_timezone == "Asia/Tokyo"
        assert config.reconcile_interval_seconds == 120.0
        assert config.orchestrator_timeout_seconds == 10.0
        assert config.audit_cache_size == 500
        assert config.metrics is False

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert TrigflowConfig.from_file(path).default_timezone == DEFAULT_TIMEZONE

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TrigflowConfig.from_file(tmp_path / "nope.yaml")


class TestEnvManager:
    """Tests for EnvManager."""

    def test_load_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TRIGFLOW_FROM_DOTENV", raising=False)
        (tmp_path / ".env").write_text("TRIGFLOW_FROM_DOTENV=hello\n")

        env = EnvManager(project_root=tmp_path)

        assert env.get("TRIGFLOW_FROM_DOTENV") == "hello"
        monkeypatch.delenv("TRIGFLOW_FROM_DOTENV")

    def test_load_missing_file(self, tmp_path):
        assert EnvManager(project_root=tmp_path, auto_load=False).load() is False

    def test_required(self, monkeypatch):
        monkeypatch.delenv("TRIGFLOW_NOT_SET", raising=False)
        with pytest.raises(ValueError, match="TRIGFLOW_NOT_SET"):
            EnvManager(auto_load=False).get("TRIGFLOW_NOT_SET", required=True)

    @pytest.mark.parametrize(
        ("raw", "expected"), [("yes", True), ("ON", True), ("0", False), ("maybe", True)]
    )
    def test_get_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("TRIGFLOW_FLAG", raw)
        assert EnvManager(auto_load=False).get_bool("TRIGFLOW_FLAG", default=True) is expected

    def test_substitute(self, monkeypatch):
        monkeypatch.setenv("TRIGFLOW_HOST", "db")
        monkeypatch.delenv("TRIGFLOW_MISSING", raising=False)
        env = EnvManager(auto_load=False)

        assert env.substitute("${TRIGFLOW_HOST}:${TRIGFLOW_PORT:-5432}") == "db:5432"
        assert env.substitute("$TRIGFLOW_HOST") == "db"
        assert env.substitute("${TRIGFLOW_MISSING}") == "${TRIGFLOW_MISSING}"
        with pytest.raises(ValueError, match="need it"):
            env.substitute("${TRIGFLOW_MISSING:?need it}")

    def test_substitute_dict_nested(self, monkeypatch):
        monkeypatch.setenv("TRIGFLOW_HOST", "db")
        env = EnvManager(auto_load=False)

        result = env.substitute_dict({"a": {"b": "${TRIGFLOW_HOST}"}, "c": ["$TRIGFLOW_HOST", 1], "d": 2})

        assert result == {"a": {"b": "db"}, "c": ["db", 1], "d": 2}


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(InvalidScheduleError, ConfigurationError)
        assert issubclass(ProcessNotDeployedError, ConfigurationError)
        assert issubclass(TriggerNotFoundError, NotFoundError)
        assert issubclass(ConfigurationError, TrigflowError)

    def test_messages(self):
        assert "bad" in str(InvalidScheduleError("* *", "bad"))
        assert "trigger_type" in str(ImmutableFieldError("trigger_type"))
        assert "t-1" in str(TriggerNotFoundError("t-1"))

    def test_missing_dependency_install_hint(self):
        error = MissingDependencyError("aiosqlite", "SQLite storage")
        assert "pip install aiosqlite" in str(error)
        assert "SQLite storage" in str(error)
