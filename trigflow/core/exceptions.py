"""
All trigflow exceptions
"""


class TrigflowError(Exception):
    """Base trigflow error"""


class ConfigurationError(TrigflowError):
    """A trigger is misconfigured and stays inert until corrected"""


class InvalidScheduleError(ConfigurationError):
    """Cron expression or timezone cannot be parsed"""

    def __init__(self, expression: str | None, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron schedule {expression!r}: {reason}")


class ProcessNotDeployedError(ConfigurationError):
    """Referenced process definition is not in a deployable state"""

    def __init__(self, process_definition_id: str):
        self.process_definition_id = process_definition_id
        super().__init__(f"Process definition {process_definition_id} is not deployed")


class DispatchError(TrigflowError):
    """Orchestrator call failed or timed out"""


class NotFoundError(TrigflowError):
    """Requested record does not exist"""


class TriggerNotFoundError(NotFoundError):
    """Trigger id is unknown"""

    def __init__(self, trigger_id: str):
        self.trigger_id = trigger_id
        super().__init__(f"Trigger {trigger_id} not found")


class ProcessDefinitionNotFoundError(NotFoundError):
    """Process definition id is unknown"""

    def __init__(self, process_definition_id: str):
        self.process_definition_id = process_definition_id
        super().__init__(f"Process definition {process_definition_id} not found")


class ImmutableFieldError(TrigflowError):
    """Attempt to change a field that is fixed after creation"""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(
            f"Field '{field_name}' cannot be changed after creation; delete and recreate instead"
        )


class WebhookAuthError(TrigflowError):
    """Webhook caller failed authentication"""


class JobHandlerError(TrigflowError):
    """A job handler could not apply its side effect"""


class MissingDependencyError(TrigflowError):
    """
    Raised when an optional dependency is not installed.

    Carries the install command so the caller can fix the environment.
    """

    INSTALL_COMMANDS = {
        "aiosqlite": "pip install aiosqlite",
        "croniter": "pip install croniter",
    }

    def __init__(self, package: str, feature: str | None = None):
        self.package = package
        self.feature = feature

        install_cmd = self.INSTALL_COMMANDS.get(package, f"pip install {package}")
        if feature:
            message = f"Missing dependency '{package}' required for {feature}. Install with: {install_cmd}"
        else:
            message = f"Missing dependency '{package}'. Install with: {install_cmd}"

        super().__init__(message)
