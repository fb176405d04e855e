"""
TrigflowConfig - Unified configuration for the trigger engine.

Wires together:
- Trigger, execution and run storage backends
- Scheduler and dispatch tuning (timezone, reconcile interval, timeouts)
- Observability (metrics)

Example:
    >>> from trigflow import TrigflowConfig, configure
    >>> from trigflow.storage.sqlite import SQLiteTriggerStorage, SQLiteExecutionStorage
    >>>
    >>> config = TrigflowConfig(
    ...     trigger_storage=SQLiteTriggerStorage("./triggers.db"),
    ...     execution_storage=SQLiteExecutionStorage("./triggers.db"),
    ...     default_timezone="UTC",
    ... )
    >>> configure(config)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from trigflow.storage.base import ExecutionStorage, RunStorage, TriggerStorage

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Moscow"


@dataclass
class TrigflowConfig:
    """
    Unified configuration for trigflow.

    Attributes:
        trigger_storage: Trigger record storage (defaults to in-memory)
        execution_storage: Execution audit storage (defaults to in-memory)
        run_storage: Run linkage / element audit storage (defaults to in-memory)
        default_timezone: Timezone for cron triggers that do not set one
        reconcile_interval_seconds: Period of the scheduler drift-correction pass
        orchestrator_timeout_seconds: Upper bound for one start-process call
        audit_cache_size: Maximum run linkages kept by the audit cache
        execution_history_limit: Default page size for get_executions
        recent_executions_limit: Default page size for get_recent_executions
        metrics: Record Prometheus metrics
    """

    trigger_storage: TriggerStorage | None = None
    execution_storage: ExecutionStorage | None = None
    run_storage: RunStorage | None = None

    default_timezone: str = DEFAULT_TIMEZONE
    reconcile_interval_seconds: float = 300.0
    orchestrator_timeout_seconds: float = 30.0
    audit_cache_size: int = 1000
    execution_history_limit: int = 50
    recent_executions_limit: int = 100

    metrics: bool = True

    def __post_init__(self) -> None:
        from trigflow.storage.memory import (
            InMemoryExecutionStorage,
            InMemoryRunStorage,
            InMemoryTriggerStorage,
        )

        if self.trigger_storage is None:
            self.trigger_storage = InMemoryTriggerStorage()
            logger.debug("Using default InMemoryTriggerStorage")
        if self.execution_storage is None:
            self.execution_storage = InMemoryExecutionStorage()
        if self.run_storage is None:
            self.run_storage = InMemoryRunStorage()

        if self.reconcile_interval_seconds <= 0:
            msg = "reconcile_interval_seconds must be positive"
            raise ValueError(msg)
        if self.audit_cache_size <= 0:
            msg = "audit_cache_size must be positive"
            raise ValueError(msg)

    @classmethod
    def from_env(cls, load_dotenv: bool = True) -> TrigflowConfig:
        """
        Create configuration from environment variables.

        Environment variables:
            TRIGFLOW_STORAGE_URL: memory:// (default) or sqlite:///path/to.db
            TRIGFLOW_DEFAULT_TIMEZONE: Timezone for cron triggers
            TRIGFLOW_RECONCILE_INTERVAL: Seconds between reconciliation passes
            TRIGFLOW_ORCHESTRATOR_TIMEOUT: Seconds allowed per start-process call
            TRIGFLOW_AUDIT_CACHE_SIZE: Run linkage cache bound
            TRIGFLOW_METRICS: Enable metrics (true/false)
        """
        from trigflow.core.env import get_env

        env = get_env()
        if load_dotenv:
            env.load()

        trigger_storage, execution_storage = cls._parse_storage_url(
            env.get("TRIGFLOW_STORAGE_URL", "memory://") or "memory://"
        )

        return cls(
            trigger_storage=trigger_storage,
            execution_storage=execution_storage,
            default_timezone=env.get("TRIGFLOW_DEFAULT_TIMEZONE", DEFAULT_TIMEZONE),
            reconcile_interval_seconds=env.get_float("TRIGFLOW_RECONCILE_INTERVAL", 300.0),
            orchestrator_timeout_seconds=env.get_float("TRIGFLOW_ORCHESTRATOR_TIMEOUT", 30.0),
            audit_cache_size=env.get_int("TRIGFLOW_AUDIT_CACHE_SIZE", 1000),
            metrics=env.get_bool("TRIGFLOW_METRICS", True),
        )

    @classmethod
    def from_file(cls, file_path: str | Path, substitute_env: bool = True) -> TrigflowConfig:
        """
        Load configuration from a YAML file.

        Supports environment variable substitution using ${VAR} syntax.

        Example:
            # trigflow.yaml
            # storage:
            #   url: ${TRIGFLOW_STORAGE_URL:-sqlite:///triggers.db}
            # scheduler:
            #   default_timezone: UTC
            #   reconcile_interval_seconds: 120
            # dispatch:
            #   orchestrator_timeout_seconds: 10
            #   audit_cache_size: 500
            # observability:
            #   metrics: false
        """
        import yaml

        from trigflow.core.env import get_env

        path = Path(file_path)
        if not path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        with path.open() as f:
            data = yaml.safe_load(f)

        if not data:
            return cls()

        if substitute_env:
            env = get_env()
            env.load()
            data = env.substitute_dict(data)

        storage_data: dict[str, Any] = data.get("storage") or {}
        scheduler_data: dict[str, Any] = data.get("scheduler") or {}
        dispatch_data: dict[str, Any] = data.get("dispatch") or {}
        obs_data: dict[str, Any] = data.get("observability") or {}

        trigger_storage, execution_storage = cls._parse_storage_url(
            storage_data.get("url", "memory://")
        )

        return cls(
            trigger_storage=trigger_storage,
            execution_storage=execution_storage,
            default_timezone=scheduler_data.get("default_timezone", DEFAULT_TIMEZONE),
            reconcile_interval_seconds=float(scheduler_data.get("reconcile_interval_seconds", 300.0)),
            orchestrator_timeout_seconds=float(dispatch_data.get("orchestrator_timeout_seconds", 30.0)),
            audit_cache_size=int(dispatch_data.get("audit_cache_size", 1000)),
            execution_history_limit=int(dispatch_data.get("execution_history_limit", 50)),
            recent_executions_limit=int(dispatch_data.get("recent_executions_limit", 100)),
            metrics=_as_bool(obs_data.get("metrics", True)),
        )

    @staticmethod
    def _parse_storage_url(url: str) -> tuple[TriggerStorage | None, ExecutionStorage | None]:
        """Parse storage URL and return trigger + execution storages."""
        if url in ("", "memory://"):
            return None, None
        if url.startswith("sqlite://"):
            from trigflow.storage.sqlite import SQLiteExecutionStorage, SQLiteTriggerStorage

            db_path = url[len("sqlite:///"):] if url.startswith("sqlite:///") else ":memory:"
            return SQLiteTriggerStorage(db_path or ":memory:"), SQLiteExecutionStorage(
                db_path or ":memory:"
            )
        msg = f"Unknown storage URL scheme: {url}"
        raise ValueError(msg)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


# Global configuration singleton
_global_config: TrigflowConfig | None = None


def get_config() -> TrigflowConfig:
    """Get the global trigflow configuration."""
    global _global_config
    if _global_config is None:
        _global_config = TrigflowConfig()
    return _global_config


def configure(config: TrigflowConfig) -> None:
    """Set the global trigflow configuration."""
    global _global_config
    _global_config = config
    logger.info(f"Trigflow configured: storage={type(config.trigger_storage).__name__}")
