"""
Per-element execution audit.

Every handled job leaves one ElementExecutionRecord behind. Resolving the
internal run behind a job's external run key costs a storage round-trip, so
the linkage is cached per run and reused by every later job of that run.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import TYPE_CHECKING

from trigflow.core.config import TrigflowConfig, get_config
from trigflow.core.logger import get_logger
from trigflow.jobs.types import ElementExecutionRecord, Job, RunLinkage, utcnow
from trigflow.monitoring.metrics import record_cache_lookup

if TYPE_CHECKING:
    from trigflow.storage.base import RunStorage

logger = get_logger(__name__)

DEFAULT_CACHE_SIZE = 1000


class ExecutionAuditCache:
    """
    Bounded LRU map of external run key -> RunLinkage.

    No lock is taken: two jobs of the same run racing on a cold entry both
    look it up and the second put wins, which is harmless.
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size <= 0:
            msg = "max_size must be positive"
            raise ValueError(msg)
        self.max_size = max_size
        self._entries: OrderedDict[str, RunLinkage] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, run_key: str) -> RunLinkage | None:
        linkage = self._entries.get(run_key)
        if linkage is None:
            self.misses += 1
            record_cache_lookup(hit=False)
            return None

        self._entries.move_to_end(run_key)
        self.hits += 1
        record_cache_lookup(hit=True)
        return linkage

    def put(self, run_key: str, linkage: RunLinkage) -> None:
        self._entries[run_key] = linkage
        self._entries.move_to_end(run_key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __contains__(self, run_key: object) -> bool:
        return run_key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class ElementAuditRecorder:
    """Writes the per-element audit record for a handled job."""

    def __init__(self, run_storage: RunStorage, cache: ExecutionAuditCache | None = None):
        self.run_storage = run_storage
        self.cache = cache if cache is not None else ExecutionAuditCache()

    @classmethod
    def from_config(cls, config: TrigflowConfig | None = None) -> ElementAuditRecorder:
        """Recorder over the configured run storage and cache bound."""
        config = config or get_config()
        return cls(config.run_storage, ExecutionAuditCache(config.audit_cache_size))

    async def resolve(self, run_key: str) -> RunLinkage | None:
        linkage = self.cache.get(run_key)
        if linkage is not None:
            return linkage

        linkage = await self.run_storage.find_linkage(run_key)
        if linkage is not None:
            self.cache.put(run_key, linkage)
        return linkage

    async def record(self, job: Job, status: str, started_at: datetime) -> ElementExecutionRecord | None:
        """
        Record the outcome of one job.

        Skipped when the job has no element id or its run is unknown.
        Never raises: audit failures are logged and dropped.
        """
        try:
            if not job.element_id:
                return None

            run_key = str(job.process_instance_key)
            linkage = await self.resolve(run_key)
            if linkage is None:
                logger.debug(f"No run found for key {run_key}, skipping element audit")
                return None

            completed_at = utcnow()
            record = ElementExecutionRecord(
                process_instance_id=linkage.instance_id,
                process_definition_id=linkage.definition_id,
                element_id=job.element_id,
                status=status,
                started_at=started_at,
                completed_at=completed_at,
                duration_ms=round((completed_at - started_at).total_seconds() * 1000),
                worker_type=job.type or None,
            )
            await self.run_storage.save_element_record(record)
            return record
        except Exception as e:
            logger.warning(f"Failed to log element execution: {e}")
            return None
