"""
Trigger sources that produce events on their own.

Available sources:
- CronReconciliationScheduler: time-based triggers
"""

from trigflow.triggers.sources.cron import CronReconciliationScheduler, next_fire_time

__all__ = [
    "CronReconciliationScheduler",
    "next_fire_time",
]
