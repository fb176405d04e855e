"""
Shared enums for triggers, executions and jobs.
"""

from enum import Enum


class TriggerType(Enum):
    """
    Kind of domain event a trigger listens to.

    The type of a trigger never changes after creation; re-typing is
    modelled as delete + create.
    """

    ENTITY_CREATED = "entity_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNEE_CHANGED = "assignee_changed"
    COMMENT_ADDED = "comment_added"
    CRON = "cron"
    WEBHOOK = "webhook"
    MESSAGE = "message"


class ExecutionStatus(Enum):
    """Outcome of one trigger firing attempt"""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    SKIPPED = "skipped"
    """Reserved; the pipeline never writes rows for non-matching triggers."""


class RunStatus(Enum):
    """Status of a process run as tracked outside the orchestrator"""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INCIDENT = "incident"


class JobKind(Enum):
    """
    Job types this engine handles for the orchestrator.

    The value is the task type string the orchestrator emits.
    """

    UPDATE_ENTITY_STATUS = "update-entity-status"
    SET_ASSIGNEE = "set-assignee"
    CREATE_ENTITY = "create-entity"
    SEND_NOTIFICATION = "send-notification"
    SEND_EMAIL = "send-email"
    LOG_ACTIVITY = "log-activity"
    CLASSIFY_ENTITY = "classify-entity"
    PROCESS_COMPLETED = "process-completed"
    SUGGEST_ASSIGNEE = "suggest-assignee"
    CHECK_DUPLICATE = "check-duplicate"


class JobMode(Enum):
    """How a job handler reports side-effect errors"""

    FAIL_CAPABLE = "fail_capable"
    """Errors are reported as job failures with a decremented retry budget."""

    BEST_EFFORT = "best_effort"
    """Errors are swallowed into a completed job carrying an error flag."""
