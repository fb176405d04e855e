"""
trigflow.jobs - Job Dispatch

Runs the side effects processes ask for (status updates, notifications,
audit writes, ...) and reports the outcome back to the orchestrator.

Example:
    dispatcher = JobDispatcher(
        orchestrator,
        Collaborators(entity_store=entities, notifier=notifier),
        ElementAuditRecorder(run_storage),
    )
    dispatcher.register_all()
"""

from trigflow.jobs.types import Collaborators, ElementExecutionRecord, Job, JobResult, RunLinkage
from trigflow.jobs.audit import ElementAuditRecorder, ExecutionAuditCache
from trigflow.jobs.handlers import HANDLERS, HandlerSpec
from trigflow.jobs.dispatcher import JobDispatcher

__all__ = [
    "HANDLERS",
    "Collaborators",
    "ElementAuditRecorder",
    "ElementExecutionRecord",
    "ExecutionAuditCache",
    "HandlerSpec",
    "Job",
    "JobDispatcher",
    "JobResult",
    "RunLinkage",
]
