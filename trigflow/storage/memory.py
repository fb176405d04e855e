"""
In-memory storage backends - for testing and development.

Safe for concurrent asyncio tasks, not for multiple processes.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import TYPE_CHECKING

from trigflow.jobs.types import ElementExecutionRecord, RunLinkage
from trigflow.storage.base import ExecutionStorage, RunStorage, StorageError, TriggerStorage

if TYPE_CHECKING:
    from trigflow.triggers.models import Execution, Trigger
    from trigflow.types import RunStatus, TriggerType


class InMemoryTriggerStorage(TriggerStorage):
    """
    Dictionary-backed trigger storage.

    Returns copies so callers never mutate stored state by accident.
    """

    def __init__(self):
        self._triggers: dict[str, Trigger] = {}

    async def insert(self, trigger: Trigger) -> Trigger:
        self._triggers[trigger.id] = copy.deepcopy(trigger)
        return copy.deepcopy(trigger)

    async def get(self, trigger_id: str) -> Trigger | None:
        trigger = self._triggers.get(trigger_id)
        return copy.deepcopy(trigger) if trigger else None

    async def save(self, trigger: Trigger) -> Trigger:
        if trigger.id not in self._triggers:
            msg = f"Trigger {trigger.id} not found"
            raise StorageError(msg)
        self._triggers[trigger.id] = copy.deepcopy(trigger)
        return copy.deepcopy(trigger)

    async def delete(self, trigger_id: str) -> bool:
        return self._triggers.pop(trigger_id, None) is not None

    async def find(
        self,
        workspace_id: str | None = None,
        trigger_type: TriggerType | None = None,
        is_active: bool | None = None,
        process_definition_id: str | None = None,
    ) -> list[Trigger]:
        found = [
            t
            for t in self._triggers.values()
            if (workspace_id is None or t.workspace_id == workspace_id)
            and (trigger_type is None or t.trigger_type == trigger_type)
            and (is_active is None or t.is_active == is_active)
            and (process_definition_id is None or t.process_definition_id == process_definition_id)
        ]
        found.sort(key=lambda t: t.created_at, reverse=True)
        return [copy.deepcopy(t) for t in found]

    async def record_fire(self, trigger_id: str, fired_at: datetime) -> None:
        trigger = self._triggers.get(trigger_id)
        if trigger is None:
            return
        trigger.trigger_count += 1
        trigger.last_triggered_at = fired_at

    def clear(self) -> None:
        """Clear all triggers (for testing)."""
        self._triggers.clear()


class InMemoryExecutionStorage(ExecutionStorage):
    """List-backed execution log. Rows are copied in and out, never shared."""

    def __init__(self):
        self._executions: list[Execution] = []

    async def append(self, execution: Execution) -> Execution:
        self._executions.append(copy.deepcopy(execution))
        return copy.deepcopy(execution)

    async def list_for_trigger(self, trigger_id: str, limit: int = 50) -> list[Execution]:
        rows = [e for e in self._executions if e.trigger_id == trigger_id]
        rows.sort(key=lambda e: e.executed_at, reverse=True)
        return [copy.deepcopy(e) for e in rows[:limit]]

    async def list_recent(self, trigger_ids: list[str], limit: int = 100) -> list[Execution]:
        wanted = set(trigger_ids)
        rows = [e for e in self._executions if e.trigger_id in wanted]
        rows.sort(key=lambda e: e.executed_at, reverse=True)
        return [copy.deepcopy(e) for e in rows[:limit]]

    async def count(self) -> int:
        return len(self._executions)

    def clear(self) -> None:
        self._executions.clear()


class InMemoryRunStorage(RunStorage):
    """
    Run linkage, element audit and run status kept in dictionaries.

    ``lookups`` counts find_linkage calls so callers can observe caching.
    """

    def __init__(self):
        self._linkages: dict[str, RunLinkage] = {}
        self._statuses: dict[str, RunStatus] = {}
        self.element_records: list[ElementExecutionRecord] = []
        self.lookups = 0

    def register_run(self, process_instance_key: str, instance_id: str, definition_id: str) -> None:
        """Make a run resolvable (done by whoever starts processes)."""
        self._linkages[str(process_instance_key)] = RunLinkage(instance_id, definition_id)

    async def find_linkage(self, process_instance_key: str) -> RunLinkage | None:
        self.lookups += 1
        return self._linkages.get(str(process_instance_key))

    async def save_element_record(self, record: ElementExecutionRecord) -> None:
        self.element_records.append(record)

    async def update_run_status(self, process_instance_key: str, status: RunStatus) -> None:
        key = str(process_instance_key)
        if key not in self._linkages:
            msg = f"Process run {key} not found"
            raise StorageError(msg)
        self._statuses[key] = status

    def get_run_status(self, process_instance_key: str) -> RunStatus | None:
        return self._statuses.get(str(process_instance_key))
