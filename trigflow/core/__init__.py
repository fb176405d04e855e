"""
Core module for trigflow - configuration, errors and logging.
"""

from trigflow.core.config import TrigflowConfig, configure, get_config
from trigflow.core.env import EnvManager, get_env
from trigflow.core.exceptions import (
    ConfigurationError,
    DispatchError,
    ImmutableFieldError,
    InvalidScheduleError,
    JobHandlerError,
    MissingDependencyError,
    NotFoundError,
    ProcessDefinitionNotFoundError,
    ProcessNotDeployedError,
    TriggerNotFoundError,
    TrigflowError,
    WebhookAuthError,
)
from trigflow.core.logger import configure_default_logging, get_logger, set_logger

__all__ = [
    "ConfigurationError",
    "DispatchError",
    "EnvManager",
    "ImmutableFieldError",
    "InvalidScheduleError",
    "JobHandlerError",
    "MissingDependencyError",
    "NotFoundError",
    "ProcessDefinitionNotFoundError",
    "ProcessNotDeployedError",
    "TriggerNotFoundError",
    "TrigflowConfig",
    "TrigflowError",
    "WebhookAuthError",
    "configure",
    "configure_default_logging",
    "get_config",
    "get_env",
    "get_logger",
    "set_logger",
]
