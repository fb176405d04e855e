"""
Prometheus metrics for trigger evaluation, cron scheduling and job dispatch.

Quick Start:
    >>> from prometheus_client import start_http_server
    >>> start_http_server(8000)  # exposes the metrics below on /metrics
"""

from prometheus_client import Counter, Gauge, Histogram

# Counters
TRIGGER_EVALUATIONS = Counter(
    "trigflow_trigger_evaluations_total",
    "Triggers evaluated against incoming events",
    ["trigger_type", "matched"],
)

TRIGGER_EXECUTIONS = Counter(
    "trigflow_trigger_executions_total",
    "Trigger firing attempts by outcome",
    ["trigger_type", "status"],
)

JOB_OUTCOMES = Counter(
    "trigflow_job_outcomes_total",
    "Jobs handled by outcome",
    ["job_type", "outcome"],
)

AUDIT_CACHE_LOOKUPS = Counter(
    "trigflow_audit_cache_lookups_total",
    "Run linkage cache lookups",
    ["result"],
)

# Gauges
CRON_TIMERS_REGISTERED = Gauge(
    "trigflow_cron_timers_registered",
    "Cron triggers currently holding a live timer",
)

# Histograms
ORCHESTRATOR_START_DURATION = Histogram(
    "trigflow_orchestrator_start_duration_seconds",
    "Time spent in start-process calls",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)


def record_evaluation(trigger_type: str, matched: bool) -> None:
    TRIGGER_EVALUATIONS.labels(trigger_type=trigger_type, matched=str(matched).lower()).inc()


def record_execution(trigger_type: str, status: str, start_duration: float | None = None) -> None:
    TRIGGER_EXECUTIONS.labels(trigger_type=trigger_type, status=status).inc()
    if start_duration is not None:
        ORCHESTRATOR_START_DURATION.observe(start_duration)


def record_job_outcome(job_type: str, outcome: str) -> None:
    JOB_OUTCOMES.labels(job_type=job_type, outcome=outcome).inc()


def record_cache_lookup(hit: bool) -> None:
    AUDIT_CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()


def set_registered_timers(count: int) -> None:
    CRON_TIMERS_REGISTERED.set(count)
