import asyncio
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from trigflow.core.config import TrigflowConfig, get_config
from trigflow.core.exceptions import DispatchError, ProcessNotDeployedError
from trigflow.core.logger import get_logger
from trigflow.monitoring.logging import bind_trigger_context
from trigflow.monitoring.metrics import record_evaluation, record_execution
from trigflow.orchestrator.base import ProcessOrchestrator, RunHandle, StartOptions
from trigflow.triggers.conditions import matches
from trigflow.triggers.models import Execution, Trigger
from trigflow.triggers.registry import TriggerRegistry
from trigflow.triggers.variables import map_variables
from trigflow.types import ExecutionStatus, TriggerType

logger = get_logger(__name__)

CRON_TRIGGERED_BY = "cron-scheduler"


class TriggerEngine:
    """
    Evaluates incoming events against active triggers and starts processes.

    Handles:
    - Trigger lookup by type and workspace
    - Condition matching
    - Variable mapping
    - Process start, bounded by the orchestrator timeout
    - One Execution row per matched trigger

    Firing never raises: every failure ends up as a failed Execution.
    """

    def __init__(
        self,
        registry: TriggerRegistry,
        orchestrator: ProcessOrchestrator,
        config: TrigflowConfig | None = None,
    ):
        self.registry = registry
        self.orchestrator = orchestrator
        self.config = config or registry.config or get_config()

    @property
    def executions(self):
        return self.config.execution_storage

    async def evaluate_triggers(
        self,
        trigger_type: TriggerType | str,
        context: Mapping[str, Any],
        workspace_id: str,
    ) -> list[Execution]:
        """
        Evaluate an event against every active trigger of its type.

        Triggers are evaluated one after another; a failure in one never
        stops its siblings.

        Args:
            trigger_type: Event type
            context: Event payload (entityId, oldStatus, newStatus, ...)
            workspace_id: Scope the event belongs to

        Returns:
            Executions written for the triggers that matched.
        """
        trigger_type = TriggerType(trigger_type)
        triggers = await self.registry.find_active(trigger_type, workspace_id)

        logger.debug(
            f"Evaluating {len(triggers)} triggers of type {trigger_type.value} "
            f"for workspace {workspace_id}"
        )

        executions = []
        for trigger in triggers:
            try:
                matched = matches(trigger.conditions, context)
                self._record_evaluation(trigger, matched)
                if matched:
                    executions.append(await self.fire(trigger, context))
            except Exception as e:
                logger.exception(f"Error evaluating trigger {trigger.id}: {e}")

        return executions

    async def fire(self, trigger: Trigger, context: Mapping[str, Any]) -> Execution:
        """Start the trigger's process for ``context`` and record the attempt."""
        with bind_trigger_context(
            trigger_id=trigger.id,
            workspace_id=trigger.workspace_id,
            trigger_type=trigger.trigger_type.value,
        ):
            logger.info(f"Firing trigger {trigger.id} ({trigger.display_name})")

            options = StartOptions(
                entity_id=context.get("entityId"),
                started_by_id=context.get("userId") or context.get("createdById"),
            )
            variables = map_variables(trigger.variable_mappings, context)
            return await self._dispatch(trigger, dict(context), variables, options)

    async def fire_scheduled(self, trigger_id: str, expression: str | None = None) -> Execution | None:
        """
        Fire a cron trigger on a scheduler tick.

        The trigger is reloaded first. Returns None without writing an
        execution when it is gone or inactive; the caller is expected to
        drop its timer.
        """
        trigger = await self.registry.storage.get(trigger_id)
        if trigger is None or not trigger.is_active:
            logger.warning(f"Trigger {trigger_id} is no longer active, skipping")
            return None

        expression = expression or trigger.cron_expression
        now = datetime.now(UTC)
        context = {
            "triggerType": TriggerType.CRON.value,
            "expression": expression,
            "executedAt": now.isoformat(),
            "workspaceId": trigger.workspace_id,
            "triggeredBy": CRON_TRIGGERED_BY,
        }

        variables = {
            **map_variables(trigger.variable_mappings, context),
            "workspaceId": trigger.workspace_id,
            "triggeredBy": CRON_TRIGGERED_BY,
            "triggerType": TriggerType.CRON.value,
            "expression": expression,
            "scheduledTime": now.isoformat(),
        }
        options = StartOptions(business_key=f"cron-{trigger.id}-{int(now.timestamp() * 1000)}")

        with bind_trigger_context(
            trigger_id=trigger.id,
            workspace_id=trigger.workspace_id,
            trigger_type=TriggerType.CRON.value,
        ):
            logger.info(f"Executing cron trigger {trigger.id} ({trigger.name or 'unnamed'})")
            return await self._dispatch(trigger, context, variables, options)

    async def _dispatch(
        self,
        trigger: Trigger,
        context: dict[str, Any],
        variables: dict[str, Any],
        options: StartOptions,
    ) -> Execution:
        execution = Execution(
            trigger_id=trigger.id, trigger_context=context, status=ExecutionStatus.PENDING
        )
        start_duration = None

        try:
            await self._ensure_deployed(trigger)

            started = time.perf_counter()
            run = await self._start_process(trigger, variables, options)
            start_duration = time.perf_counter() - started

            execution.process_instance_id = run.id
            execution.status = ExecutionStatus.SUCCESS
            await self._record_fire(trigger)

            logger.info(f"Trigger {trigger.id} fired successfully, started process instance {run.id}")
        except Exception as e:
            execution.status = ExecutionStatus.FAILED
            execution.error_message = str(e) or type(e).__name__
            logger.error(f"Failed to fire trigger {trigger.id}: {execution.error_message}")

        if self.config.metrics:
            record_execution(trigger.trigger_type.value, execution.status.value, start_duration)

        return await self._save_execution(execution)

    async def _ensure_deployed(self, trigger: Trigger) -> None:
        definition = await self.orchestrator.find_definition(trigger.process_definition_id)
        if definition is None or not definition.is_deployed:
            raise ProcessNotDeployedError(trigger.process_definition_id)

    async def _start_process(
        self, trigger: Trigger, variables: dict[str, Any], options: StartOptions
    ) -> RunHandle:
        timeout = self.config.orchestrator_timeout_seconds
        try:
            return await asyncio.wait_for(
                self.orchestrator.start_process(trigger.process_definition_id, variables, options),
                timeout=timeout,
            )
        except TimeoutError as e:
            msg = f"Orchestrator did not start process {trigger.process_definition_id} within {timeout}s"
            raise DispatchError(msg) from e

    async def _record_fire(self, trigger: Trigger) -> None:
        # Advisory stats
        try:
            await self.registry.record_fire(trigger.id)
        except Exception as e:
            logger.warning(f"Could not update fire statistics for trigger {trigger.id}: {e}")

    async def _save_execution(self, execution: Execution) -> Execution:
        try:
            return await self.executions.append(execution)
        except Exception as e:
            logger.error(f"Could not save execution for trigger {execution.trigger_id}: {e}")
            return execution

    def _record_evaluation(self, trigger: Trigger, matched: bool) -> None:
        if self.config.metrics:
            record_evaluation(trigger.trigger_type.value, matched)
