"""
Process orchestrator interface and the in-memory implementation.
"""

from trigflow.orchestrator.base import JobHandler, ProcessOrchestrator, RunHandle, StartOptions
from trigflow.orchestrator.memory import InMemoryOrchestrator, JobReport, StartedRun

__all__ = [
    "InMemoryOrchestrator",
    "JobHandler",
    "JobReport",
    "ProcessOrchestrator",
    "RunHandle",
    "StartOptions",
    "StartedRun",
]
