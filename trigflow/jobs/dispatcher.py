import asyncio
from typing import Any

from trigflow.core.logger import get_logger
from trigflow.jobs.audit import ElementAuditRecorder
from trigflow.jobs.handlers import HANDLERS, HandlerSpec
from trigflow.jobs.types import Collaborators, Job, JobResult, utcnow
from trigflow.monitoring.logging import bind_trigger_context
from trigflow.monitoring.metrics import record_job_outcome
from trigflow.orchestrator.base import ProcessOrchestrator
from trigflow.types import JobKind, JobMode

logger = get_logger(__name__)


class JobDispatcher:
    """
    Registers one worker per JobKind with the orchestrator and runs jobs.

    Handles:
    - Completion with handler output
    - Failure with a decremented retry budget (fail-capable kinds)
    - Error-flagged completion (best-effort kinds)
    - Incident marking once the retry budget is exhausted
    - Element audit in the background

    Example:
        >>> dispatcher = JobDispatcher(orchestrator, Collaborators(notifier=notifier))
        >>> dispatcher.register_all()
    """

    def __init__(
        self,
        orchestrator: ProcessOrchestrator,
        collaborators: Collaborators | None = None,
        audit_recorder: ElementAuditRecorder | None = None,
        handlers: dict[JobKind, HandlerSpec] | None = None,
    ):
        self.orchestrator = orchestrator
        self.collaborators = collaborators or Collaborators()
        self.audit_recorder = audit_recorder
        self.handlers = handlers or HANDLERS
        self._background_tasks: set[asyncio.Task] = set()
        self._stats = {"processed": 0, "completed": 0, "failed": 0, "errors": 0}

    def register_all(self) -> None:
        for kind in self.handlers:
            self.orchestrator.create_worker(kind.value, self._worker_for(kind))

        logger.info(
            f"Job workers registered: {', '.join(kind.value for kind in self.handlers)}"
        )

    def _worker_for(self, kind: JobKind):
        async def worker(job: Job) -> JobResult:
            return await self.handle(kind, job)

        return worker

    async def handle(self, kind: JobKind, job: Job) -> JobResult:
        """Run the handler for ``kind`` and report the outcome on ``job``."""
        spec = self.handlers[kind]
        started_at = utcnow()
        self._stats["processed"] += 1

        with bind_trigger_context(
            job_key=job.key, job_type=kind.value, process_instance_key=job.process_instance_key
        ):
            logger.info(f"Handling job {job.key} of type {kind.value}")

            try:
                output = await spec.handler(job, self.collaborators)
            except Exception as e:
                self._stats["errors"] += 1
                self._schedule_audit(job, "failed", started_at)
                logger.error(f"Job {job.key} ({kind.value}) failed: {e}")
                return await self._report_error(kind, spec, job, str(e))

            self._schedule_audit(job, "success", started_at)
            self._stats["completed"] += 1
            record_job_outcome(kind.value, "completed")
            return await job.complete(output)

    async def _report_error(
        self, kind: JobKind, spec: HandlerSpec, job: Job, message: str
    ) -> JobResult:
        if spec.mode is JobMode.BEST_EFFORT:
            self._stats["completed"] += 1
            record_job_outcome(kind.value, "completed_with_error")
            payload = spec.on_error(message) if spec.on_error else {"error": message}
            return await job.complete(payload)

        self._stats["failed"] += 1
        record_job_outcome(kind.value, "failed")
        return await self._fail_with_incident_check(job, message)

    async def _fail_with_incident_check(self, job: Job, message: str) -> JobResult:
        remaining = job.retries - 1
        incidents = self.collaborators.incident_service

        if remaining <= 0 and incidents is not None:
            try:
                await incidents.mark_as_incident(str(job.process_instance_key), message)
            except Exception as e:
                logger.warning(f"Failed to mark incident: {e}")

        return await job.fail(message, remaining)

    def _schedule_audit(self, job: Job, status: str, started_at) -> None:
        """Write the element audit record without waiting for it."""
        if self.audit_recorder is None:
            return

        task = asyncio.create_task(self.audit_recorder.record(job, status, started_at))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for pending audit writes (tests and shutdown)."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    @property
    def pending_audits(self) -> int:
        return len(self._background_tasks)

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "pending_audits": self.pending_audits}
