"""
In-Memory Orchestrator - For testing and development.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from trigflow.core.exceptions import DispatchError
from trigflow.jobs.types import Job, JobResult
from trigflow.orchestrator.base import JobHandler, ProcessOrchestrator, RunHandle, StartOptions
from trigflow.triggers.models import ProcessDefinition

if TYPE_CHECKING:
    from trigflow.storage.memory import InMemoryRunStorage


@dataclass
class StartedRun:
    """A start-process call recorded by the in-memory orchestrator."""

    handle: RunHandle
    variables: dict[str, Any]
    options: StartOptions
    cancelled: bool = False


@dataclass
class JobReport:
    """Completion or failure reported for an emitted job."""

    job_key: str
    completed: bool
    variables: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    retries: int | None = None


class InMemoryOrchestrator(ProcessOrchestrator):
    """
    In-memory orchestrator for testing and development.

    Runs and job reports are kept in memory and can be inspected.

    Usage:
        >>> orchestrator = InMemoryOrchestrator()
        >>> orchestrator.deploy(ProcessDefinition(id="def-1", deployed_key="key-1"))
        >>> run = await orchestrator.start_process("def-1", {"entityId": "e1"})
        >>>
        >>> # Hand a job to whichever worker registered for it
        >>> result = await orchestrator.emit_job("send-email", {"to": "a@b.c"})
    """

    def __init__(self, run_storage: InMemoryRunStorage | None = None):
        self._definitions: dict[str, ProcessDefinition] = {}
        self._workers: dict[str, JobHandler] = {}
        self._start_errors: list[Exception] = []
        self.runs: list[StartedRun] = []
        self.reports: list[JobReport] = []
        self.run_storage = run_storage

    def deploy(self, definition: ProcessDefinition) -> None:
        self._definitions[definition.id] = definition

    def fail_next_start(self, error: Exception) -> None:
        """Make the next start_process call raise ``error``."""
        self._start_errors.append(error)

    async def find_definition(self, process_definition_id: str) -> ProcessDefinition | None:
        return self._definitions.get(process_definition_id)

    async def start_process(
        self,
        process_definition_id: str,
        variables: dict[str, Any],
        options: StartOptions | None = None,
    ) -> RunHandle:
        if self._start_errors:
            raise self._start_errors.pop(0)

        definition = self._definitions.get(process_definition_id)
        if definition is None or not definition.is_deployed:
            msg = f"Process definition {process_definition_id} is not deployed"
            raise DispatchError(msg)

        handle = RunHandle(
            id=str(uuid.uuid4()),
            process_instance_key=str(uuid.uuid4().int % 10**16),
            process_definition_id=process_definition_id,
        )
        self.runs.append(StartedRun(handle, dict(variables), options or StartOptions()))

        if self.run_storage is not None:
            self.run_storage.register_run(handle.process_instance_key, handle.id, process_definition_id)

        return handle

    async def cancel(self, run_id: str) -> None:
        for run in self.runs:
            if run.handle.id == run_id:
                run.cancelled = True
                return
        msg = f"Run {run_id} not found"
        raise DispatchError(msg)

    def create_worker(self, job_type: str, handler: JobHandler) -> None:
        self._workers[job_type] = handler

    @property
    def worker_types(self) -> list[str]:
        return sorted(self._workers)

    async def emit_job(
        self,
        job_type: str,
        variables: dict[str, Any] | None = None,
        process_instance_key: str = "",
        element_id: str | None = None,
        retries: int = 3,
    ) -> JobResult:
        """
        Deliver a job to the registered worker and wait for its report.

        Raises:
            DispatchError: If no worker is registered for ``job_type``
        """
        handler = self._workers.get(job_type)
        if handler is None:
            msg = f"No worker registered for job type {job_type}"
            raise DispatchError(msg)

        key = str(uuid.uuid4())

        async def on_complete(output: dict[str, Any]) -> None:
            self.reports.append(JobReport(job_key=key, completed=True, variables=output))

        async def on_fail(error_message: str, remaining: int) -> None:
            self.reports.append(
                JobReport(job_key=key, completed=False, error_message=error_message, retries=remaining)
            )

        job = Job(
            key=key,
            type=job_type,
            variables=dict(variables or {}),
            process_instance_key=str(process_instance_key),
            element_id=element_id,
            retries=retries,
            on_complete=on_complete,
            on_fail=on_fail,
        )
        return await handler(job)
