"""
Process orchestrator interface.

The orchestrator is the external workflow engine: it starts process runs,
cancels them, and hands jobs to registered workers. Trigflow only talks to
it through this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from trigflow.jobs.types import Job, JobResult
    from trigflow.triggers.models import ProcessDefinition

JobHandler = Callable[["Job"], Awaitable["JobResult"]]


@dataclass
class StartOptions:
    """Hints passed along with a start-process request."""

    entity_id: str | None = None
    business_key: str | None = None
    started_by_id: str | None = None


@dataclass
class RunHandle:
    """Handle of a started process run."""

    id: str
    process_instance_key: str | None = None
    process_definition_id: str | None = None


class ProcessOrchestrator(ABC):
    """
    Abstract process orchestrator.

    Implementations must bound every call by their own timeout; trigflow
    additionally wraps start_process in a timeout of its own.
    """

    @abstractmethod
    async def find_definition(self, process_definition_id: str) -> ProcessDefinition | None:
        """Look up a process definition, None when unknown."""
        ...

    @abstractmethod
    async def start_process(
        self,
        process_definition_id: str,
        variables: dict[str, Any],
        options: StartOptions | None = None,
    ) -> RunHandle:
        """
        Start a process run.

        Raises:
            Exception: Any failure; callers record it as a failed execution
        """
        ...

    @abstractmethod
    async def cancel(self, run_id: str) -> None:
        ...

    @abstractmethod
    def create_worker(self, job_type: str, handler: JobHandler) -> None:
        """Register ``handler`` for jobs of ``job_type``."""
        ...
