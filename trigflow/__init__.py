"""
Trigflow - Event-Driven Process Triggers and Job Dispatch

Decides, on every domain event or clock tick, whether an automated process
should start, and runs the jobs those processes hand back:
- Declarative trigger conditions with a minimal comparison grammar
- Variable mapping from event context to process variables
- Cron triggers with a self-reconciling scheduler
- Webhook ingress with HMAC-SHA256 or shared-secret authentication
- Fail-capable and best-effort job handlers with retry budgets
- Per-element execution audit with a bounded run-linkage cache
- Prometheus metrics and structured logging

Usage:
    >>> from trigflow import (
    ...     InMemoryOrchestrator, TriggerEngine, TriggerRegistry,
    ...     CronReconciliationScheduler,
    ... )
    >>>
    >>> orchestrator = InMemoryOrchestrator()
    >>> registry = TriggerRegistry(orchestrator)
    >>> engine = TriggerEngine(registry, orchestrator)
    >>> scheduler = CronReconciliationScheduler(registry, engine)
    >>> await scheduler.start()
    >>>
    >>> await engine.evaluate_triggers(
    ...     "status_changed",
    ...     {"entityId": "e-1", "oldStatus": "new", "newStatus": "in_progress"},
    ...     workspace_id="ws-1",
    ... )
"""

from trigflow.types import ExecutionStatus, JobKind, JobMode, RunStatus, TriggerType

# Configuration
from trigflow.core import (
    ConfigurationError,
    DispatchError,
    ImmutableFieldError,
    InvalidScheduleError,
    JobHandlerError,
    MissingDependencyError,
    NotFoundError,
    ProcessDefinitionNotFoundError,
    ProcessNotDeployedError,
    TriggerNotFoundError,
    TrigflowConfig,
    TrigflowError,
    WebhookAuthError,
    configure,
    get_config,
    get_logger,
    set_logger,
)

# Triggers
from trigflow.triggers import (
    CronReconciliationScheduler,
    Execution,
    ProcessDefinition,
    Trigger,
    TriggerEngine,
    TriggerRegistry,
    WebhookReceiver,
    map_variables,
    matches,
    resolve_path,
    verify_webhook,
)

# Jobs
from trigflow.jobs import (
    Collaborators,
    ElementAuditRecorder,
    ExecutionAuditCache,
    Job,
    JobDispatcher,
    JobResult,
)
from trigflow.orchestrator import InMemoryOrchestrator, ProcessOrchestrator, RunHandle, StartOptions

__version__ = "0.1.0"

__all__ = [
    "Collaborators",
    "ConfigurationError",
    "CronReconciliationScheduler",
    "DispatchError",
    "ElementAuditRecorder",
    "Execution",
    "ExecutionAuditCache",
    "ExecutionStatus",
    "ImmutableFieldError",
    "InMemoryOrchestrator",
    "InvalidScheduleError",
    "Job",
    "JobDispatcher",
    "JobHandlerError",
    "JobKind",
    "JobMode",
    "JobResult",
    "MissingDependencyError",
    "NotFoundError",
    "ProcessDefinition",
    "ProcessDefinitionNotFoundError",
    "ProcessNotDeployedError",
    "ProcessOrchestrator",
    "RunHandle",
    "RunStatus",
    "StartOptions",
    "Trigger",
    "TriggerEngine",
    "TriggerNotFoundError",
    "TriggerRegistry",
    "TriggerType",
    "TrigflowConfig",
    "TrigflowError",
    "WebhookAuthError",
    "configure",
    "get_config",
    "get_logger",
    "map_variables",
    "matches",
    "resolve_path",
    "set_logger",
    "verify_webhook",
]
