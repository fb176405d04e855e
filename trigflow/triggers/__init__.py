"""
trigflow.triggers - Event-Driven Trigger System

Starts processes in response to domain events, webhook calls and cron ticks.

Example:
    registry = TriggerRegistry(orchestrator)
    engine = TriggerEngine(registry, orchestrator)

    await registry.create(
        {
            "workspace_id": "ws-1",
            "process_definition_id": "def-1",
            "trigger_type": "status_changed",
            "conditions": {"toStatus": "done"},
        }
    )
    await engine.evaluate_triggers("status_changed", {"newStatus": "done"}, "ws-1")
"""

from trigflow.triggers.paths import MISSING, resolve_path
from trigflow.triggers.conditions import evaluate_expression, matches
from trigflow.triggers.variables import default_variables, map_variables
from trigflow.triggers.models import Execution, ProcessDefinition, Trigger
from trigflow.triggers.registry import TriggerChangeListener, TriggerRegistry
from trigflow.triggers.engine import TriggerEngine
from trigflow.triggers.webhook import WebhookReceiver, sign, verify_webhook
from trigflow.triggers.sources.cron import CronReconciliationScheduler

__all__ = [
    "MISSING",
    "CronReconciliationScheduler",
    "Execution",
    "ProcessDefinition",
    "Trigger",
    "TriggerChangeListener",
    "TriggerEngine",
    "TriggerRegistry",
    "WebhookReceiver",
    "default_variables",
    "evaluate_expression",
    "map_variables",
    "matches",
    "resolve_path",
    "sign",
    "verify_webhook",
]
