"""
Persisted trigger records and their execution audit rows.

Example:
    >>> trigger = Trigger(
    ...     workspace_id="ws-1",
    ...     process_definition_id="def-1",
    ...     trigger_type=TriggerType.STATUS_CHANGED,
    ...     conditions={"fromStatus": "new", "toStatus": "in_progress"},
    ... )
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from trigflow.types import ExecutionStatus, TriggerType

# Fields TriggerRegistry.update may replace
MUTABLE_TRIGGER_FIELDS = (
    "process_definition_id",
    "conditions",
    "variable_mappings",
    "is_active",
    "name",
    "description",
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Trigger:
    """
    A rule binding an event type and declarative conditions to a process definition.

    Attributes:
        workspace_id: Owning scope (tenant/workspace)
        process_definition_id: Process started when the trigger fires
        trigger_type: Event type listened to; immutable after creation
        conditions: Named predicate fields; empty matches unconditionally.
            Cron triggers keep their schedule under "expression" and an
            optional "timezone"; webhook triggers may set "secret".
        variable_mappings: Output variable name -> "$.path" or literal
        is_active: Inactive triggers are never evaluated nor scheduled
        last_triggered_at: Advisory, updated on successful fire
        trigger_count: Advisory, incremented on successful fire
    """

    workspace_id: str
    process_definition_id: str
    trigger_type: TriggerType

    conditions: dict[str, Any] = field(default_factory=dict)
    variable_mappings: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    name: str | None = None
    description: str | None = None
    created_by_id: str | None = None

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    last_triggered_at: datetime | None = None
    trigger_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if isinstance(self.trigger_type, str):
            self.trigger_type = TriggerType(self.trigger_type)
        if self.conditions is None:
            self.conditions = {}
        if self.variable_mappings is None:
            self.variable_mappings = {}

    @property
    def is_cron(self) -> bool:
        return self.trigger_type == TriggerType.CRON

    @property
    def cron_expression(self) -> str | None:
        """Schedule expression of a cron trigger, if any."""
        return self.conditions.get("expression") or None

    @property
    def cron_timezone(self) -> str | None:
        return self.conditions.get("timezone") or None

    @property
    def display_name(self) -> str:
        return self.name or self.trigger_type.value

    def to_dict(self) -> dict[str, Any]:
        """Convert trigger to dictionary for serialization."""
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "process_definition_id": self.process_definition_id,
            "trigger_type": self.trigger_type.value,
            "conditions": self.conditions,
            "variable_mappings": self.variable_mappings,
            "is_active": self.is_active,
            "name": self.name,
            "description": self.description,
            "created_by_id": self.created_by_id,
            "last_triggered_at": _format_datetime(self.last_triggered_at),
            "trigger_count": self.trigger_count,
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trigger":
        """Create trigger from dictionary."""
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            workspace_id=data["workspace_id"],
            process_definition_id=data["process_definition_id"],
            trigger_type=TriggerType(data["trigger_type"]),
            conditions=data.get("conditions") or {},
            variable_mappings=data.get("variable_mappings") or {},
            is_active=bool(data.get("is_active", True)),
            name=data.get("name"),
            description=data.get("description"),
            created_by_id=data.get("created_by_id"),
            last_triggered_at=_parse_datetime(data.get("last_triggered_at")),
            trigger_count=data.get("trigger_count", 0),
            created_at=_parse_datetime(data.get("created_at")) or _utcnow(),
            updated_at=_parse_datetime(data.get("updated_at")) or _utcnow(),
        )


@dataclass
class Execution:
    """
    Immutable audit row for one trigger firing attempt.

    Written once by the firing pipeline, never updated.
    """

    trigger_id: str
    trigger_context: dict[str, Any]
    status: ExecutionStatus

    process_instance_id: str | None = None
    error_message: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    executed_at: datetime = field(default_factory=_utcnow)

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "trigger_id": self.trigger_id,
            "trigger_context": self.trigger_context,
            "status": self.status.value,
            "process_instance_id": self.process_instance_id,
            "error_message": self.error_message,
            "executed_at": _format_datetime(self.executed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Execution":
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            trigger_id=data["trigger_id"],
            trigger_context=data.get("trigger_context") or {},
            status=ExecutionStatus(data["status"]),
            process_instance_id=data.get("process_instance_id"),
            error_message=data.get("error_message"),
            executed_at=_parse_datetime(data.get("executed_at")) or _utcnow(),
        )


@dataclass
class ProcessDefinition:
    """Process definition as reported by the orchestrator."""

    id: str
    workspace_id: str | None = None
    name: str | None = None
    deployed_key: str | None = None

    @property
    def is_deployed(self) -> bool:
        return bool(self.deployed_key)
