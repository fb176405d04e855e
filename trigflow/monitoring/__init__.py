"""
Monitoring for trigflow: structured logging and Prometheus metrics.
"""

from trigflow.monitoring.logging import (
    TriggerContextFilter,
    TriggerJsonFormatter,
    bind_trigger_context,
    trigger_context,
)

__all__ = [
    "TriggerContextFilter",
    "TriggerJsonFormatter",
    "bind_trigger_context",
    "trigger_context",
]
