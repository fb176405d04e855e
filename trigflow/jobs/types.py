"""
Job payloads, results and the external collaborators job handlers act on.

Collaborators are optional: a handler whose collaborator is absent
completes its job with a flag saying the effect was skipped.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

CompleteCallback = Callable[[dict[str, Any]], Awaitable[Any]]
FailCallback = Callable[[str, int], Awaitable[Any]]


@dataclass
class JobResult:
    """What a handler reported back to the orchestrator for one job."""

    job_key: str
    completed: bool
    variables: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    retries: int | None = None

    @property
    def failed(self) -> bool:
        return not self.completed


@dataclass
class Job:
    """
    A unit of work the orchestrator handed to this engine.

    Attributes:
        key: Orchestrator job key
        type: Task type string (see JobKind)
        variables: Job input payload
        process_instance_key: External run identifier
        element_id: Diagram element the job belongs to (optional)
        retries: Retry budget the orchestrator supplied for this attempt
    """

    key: str
    type: str
    variables: dict[str, Any] = field(default_factory=dict)
    process_instance_key: str = ""
    element_id: str | None = None
    retries: int = 3
    custom_headers: dict[str, Any] = field(default_factory=dict)

    on_complete: CompleteCallback | None = field(default=None, repr=False)
    on_fail: FailCallback | None = field(default=None, repr=False)

    async def complete(self, variables: dict[str, Any] | None = None) -> JobResult:
        """Report successful completion, with output variables."""
        payload = dict(variables or {})
        if self.on_complete is not None:
            await self.on_complete(payload)
        return JobResult(job_key=self.key, completed=True, variables=payload)

    async def fail(self, error_message: str, retries: int) -> JobResult:
        """Report failure with the remaining retry budget."""
        if self.on_fail is not None:
            await self.on_fail(error_message, retries)
        return JobResult(
            job_key=self.key, completed=False, error_message=error_message, retries=retries
        )


@dataclass
class RunLinkage:
    """Internal identifiers behind an external run key."""

    instance_id: str
    definition_id: str


@dataclass
class ElementExecutionRecord:
    """Per-element audit entry written after every handled job."""

    process_instance_id: str
    process_definition_id: str
    element_id: str
    status: str
    started_at: datetime
    completed_at: datetime
    duration_ms: int
    element_type: str = "serviceTask"
    worker_type: str | None = None


def utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Collaborator contracts
# ============================================================================


class EntityStore(Protocol):
    async def update_status(self, entity_id: str, status: str) -> Any: ...

    async def update_assignee(self, entity_id: str, assignee_id: str | None) -> Any: ...

    async def find_one(self, entity_id: str) -> Any: ...

    async def create(self, data: dict[str, Any], actor_id: str | None = None) -> Any: ...


class EmailSender(Protocol):
    async def send(self, *, to: str, subject: str, text: str, html: str) -> bool: ...


class Notifier(Protocol):
    async def notify(
        self,
        user_id: str,
        message: str,
        entity_id: str | None = None,
        workspace_id: str | None = None,
    ) -> Any: ...


class AuditLog(Protocol):
    async def log(
        self,
        action_type: str,
        workspace_id: str,
        actor_id: str | None,
        details: dict[str, Any],
        subject_id: str | None,
    ) -> Any: ...


class Classifier(Protocol):
    async def classify_and_save(self, entity_id: str) -> dict[str, Any] | None: ...


class Assistant(Protocol):
    async def get_assistance(self, entity_id: str) -> dict[str, Any]: ...


class IncidentService(Protocol):
    async def mark_as_incident(self, process_instance_key: str, error_message: str) -> Any: ...


@dataclass
class Collaborators:
    """
    Optional external services used by job handlers.

    ``run_storage`` is the engine's own RunStorage and also receives
    process-status updates.
    """

    entity_store: EntityStore | None = None
    email_sender: EmailSender | None = None
    notifier: Notifier | None = None
    audit_log: AuditLog | None = None
    classifier: Classifier | None = None
    assistant: Assistant | None = None
    incident_service: IncidentService | None = None
    run_storage: Any | None = None
