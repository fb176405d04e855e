"""
Storage interfaces.

Three independent stores back the engine:

- TriggerStorage: trigger records (CRUD + active-trigger queries)
- ExecutionStorage: append-only execution audit rows
- RunStorage: run linkage lookups, per-element audit records and
  process-run status
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

from trigflow.core.exceptions import TrigflowError

if TYPE_CHECKING:
    from trigflow.jobs.types import ElementExecutionRecord, RunLinkage
    from trigflow.triggers.models import Execution, Trigger
    from trigflow.types import RunStatus, TriggerType


class StorageError(TrigflowError):
    """Storage backend failure"""


class TriggerStorage(ABC):
    """
    Abstract storage for trigger records.

    Usage:
        >>> storage = InMemoryTriggerStorage()
        >>> await storage.insert(trigger)
        >>> active = await storage.find(trigger_type=TriggerType.CRON, is_active=True)
    """

    @abstractmethod
    async def insert(self, trigger: Trigger) -> Trigger:
        """Persist a new trigger."""
        ...

    @abstractmethod
    async def get(self, trigger_id: str) -> Trigger | None:
        """Get a trigger by id, None when unknown."""
        ...

    @abstractmethod
    async def save(self, trigger: Trigger) -> Trigger:
        """
        Replace a stored trigger.

        Raises:
            StorageError: If the trigger does not exist
        """
        ...

    @abstractmethod
    async def delete(self, trigger_id: str) -> bool:
        """Delete a trigger. Returns False when it did not exist."""
        ...

    @abstractmethod
    async def find(
        self,
        workspace_id: str | None = None,
        trigger_type: TriggerType | None = None,
        is_active: bool | None = None,
        process_definition_id: str | None = None,
    ) -> list[Trigger]:
        """Find triggers matching every given filter, newest first."""
        ...

    @abstractmethod
    async def record_fire(self, trigger_id: str, fired_at: datetime) -> None:
        """Bump fire count and last-fired timestamp (advisory, non-atomic)."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources held by the backend."""


class ExecutionStorage(ABC):
    """Append-only storage for execution audit rows."""

    @abstractmethod
    async def append(self, execution: Execution) -> Execution:
        ...

    @abstractmethod
    async def list_for_trigger(self, trigger_id: str, limit: int = 50) -> list[Execution]:
        """Executions of one trigger, newest first."""
        ...

    @abstractmethod
    async def list_recent(self, trigger_ids: list[str], limit: int = 100) -> list[Execution]:
        """Executions of any of the given triggers, newest first."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources held by the backend."""


class RunStorage(ABC):
    """Run-level records kept next to the orchestrator's own state."""

    @abstractmethod
    async def find_linkage(self, process_instance_key: str) -> RunLinkage | None:
        """Resolve an external run key to internal run and definition ids."""
        ...

    @abstractmethod
    async def save_element_record(self, record: ElementExecutionRecord) -> None:
        ...

    @abstractmethod
    async def update_run_status(self, process_instance_key: str, status: RunStatus) -> None:
        ...
