from __future__ import annotations

from dataclasses import fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from trigflow.core.config import TrigflowConfig, get_config
from trigflow.core.exceptions import (
    ImmutableFieldError,
    ProcessDefinitionNotFoundError,
    TriggerNotFoundError,
)
from trigflow.core.logger import get_logger
from trigflow.triggers.models import MUTABLE_TRIGGER_FIELDS, Execution, Trigger
from trigflow.types import TriggerType

if TYPE_CHECKING:
    from trigflow.orchestrator.base import ProcessOrchestrator

logger = get_logger(__name__)

_CREATE_FIELDS = {f.name for f in fields(Trigger)} - {
    "id",
    "last_triggered_at",
    "trigger_count",
    "created_at",
    "updated_at",
    "created_by_id",
}


class TriggerChangeListener(Protocol):
    """Notified synchronously after every trigger mutation."""

    async def on_trigger_changed(self, trigger: Trigger, deleted: bool = False) -> None: ...


class TriggerRegistry:
    """
    Owns persisted trigger records.

    Every create/update/toggle notifies the change listener (the cron
    scheduler) after the write; delete notifies it before the record goes
    away so the live timer is removed first.

    Example:
        >>> registry = TriggerRegistry(orchestrator)
        >>> trigger = await registry.create(
        ...     {
        ...         "workspace_id": "ws-1",
        ...         "process_definition_id": "def-1",
        ...         "trigger_type": "status_changed",
        ...         "conditions": {"toStatus": "done"},
        ...     },
        ...     user_id="user-1",
        ... )
    """

    def __init__(
        self,
        orchestrator: ProcessOrchestrator,
        config: TrigflowConfig | None = None,
        listener: TriggerChangeListener | None = None,
    ):
        self.orchestrator = orchestrator
        self.config = config or get_config()
        self.storage = self.config.trigger_storage
        self.executions = self.config.execution_storage
        self._listener = listener

    def set_change_listener(self, listener: TriggerChangeListener | None) -> None:
        self._listener = listener

    # ==========================================================================
    # CRUD
    # ==========================================================================

    async def create(self, data: dict[str, Any], user_id: str | None = None) -> Trigger:
        """
        Create a trigger after checking its process definition exists.

        Raises:
            ProcessDefinitionNotFoundError: If the definition is unknown
        """
        unknown = set(data) - _CREATE_FIELDS
        if unknown:
            msg = f"Unknown trigger fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        definition_id = data["process_definition_id"]
        if await self.orchestrator.find_definition(definition_id) is None:
            raise ProcessDefinitionNotFoundError(definition_id)

        trigger = Trigger(**data, created_by_id=user_id)
        saved = await self.storage.insert(trigger)
        logger.info(f"Created trigger {saved.id} for process {definition_id}")

        await self._notify(saved)
        return saved

    async def find_one(self, trigger_id: str) -> Trigger:
        trigger = await self.storage.get(trigger_id)
        if trigger is None:
            raise TriggerNotFoundError(trigger_id)
        return trigger

    async def find_by_workspace(self, workspace_id: str) -> list[Trigger]:
        return await self.storage.find(workspace_id=workspace_id)

    async def find_by_definition(self, process_definition_id: str) -> list[Trigger]:
        return await self.storage.find(process_definition_id=process_definition_id)

    async def find_active(
        self, trigger_type: TriggerType, workspace_id: str | None = None
    ) -> list[Trigger]:
        """Active triggers of one type, optionally limited to a workspace."""
        return await self.storage.find(
            workspace_id=workspace_id, trigger_type=trigger_type, is_active=True
        )

    async def update(self, trigger_id: str, changes: dict[str, Any]) -> Trigger:
        """
        Replace conditions, mappings or metadata of a trigger.

        Raises:
            ImmutableFieldError: On an attempt to change the trigger type
            TriggerNotFoundError: If the trigger does not exist
        """
        trigger = await self.find_one(trigger_id)

        if "trigger_type" in changes and TriggerType(changes["trigger_type"]) != trigger.trigger_type:
            raise ImmutableFieldError("trigger_type")

        for name, value in changes.items():
            if name == "trigger_type":
                continue
            if name not in MUTABLE_TRIGGER_FIELDS:
                raise ImmutableFieldError(name)
            if value is None and name in ("conditions", "variable_mappings"):
                value = {}
            setattr(trigger, name, value)

        if "process_definition_id" in changes:
            if await self.orchestrator.find_definition(trigger.process_definition_id) is None:
                raise ProcessDefinitionNotFoundError(trigger.process_definition_id)

        trigger.updated_at = datetime.now(UTC)
        saved = await self.storage.save(trigger)

        await self._notify(saved)
        return saved

    async def toggle(self, trigger_id: str) -> Trigger:
        trigger = await self.find_one(trigger_id)
        trigger.is_active = not trigger.is_active
        trigger.updated_at = datetime.now(UTC)

        saved = await self.storage.save(trigger)
        logger.info(f"Trigger {trigger_id} is now {'active' if saved.is_active else 'inactive'}")

        await self._notify(saved)
        return saved

    async def delete(self, trigger_id: str) -> None:
        trigger = await self.find_one(trigger_id)

        await self._notify(trigger, deleted=True)

        await self.storage.delete(trigger_id)
        logger.info(f"Deleted trigger {trigger_id}")

    async def record_fire(self, trigger_id: str, fired_at: datetime | None = None) -> None:
        """Update advisory fire statistics."""
        await self.storage.record_fire(trigger_id, fired_at or datetime.now(UTC))

    # ==========================================================================
    # Executions
    # ==========================================================================

    async def get_executions(self, trigger_id: str, limit: int | None = None) -> list[Execution]:
        return await self.executions.list_for_trigger(
            trigger_id, limit if limit is not None else self.config.execution_history_limit
        )

    async def get_recent_executions(
        self, workspace_id: str, limit: int | None = None
    ) -> list[Execution]:
        trigger_ids = [t.id for t in await self.storage.find(workspace_id=workspace_id)]
        return await self.executions.list_recent(
            trigger_ids, limit if limit is not None else self.config.recent_executions_limit
        )

    async def _notify(self, trigger: Trigger, deleted: bool = False) -> None:
        if self._listener is None:
            return
        try:
            await self._listener.on_trigger_changed(trigger, deleted=deleted)
        except Exception as e:
            logger.error(f"Change listener failed for trigger {trigger.id}: {e}")
