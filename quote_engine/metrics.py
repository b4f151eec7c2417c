"""Prometheus metrics for the quote engine."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("quote_engine", "Quote engine application info")
app_info.info({"version": "0.1.0", "name": "quote-engine"})

# Service operation metrics
operations_total = Counter(
    "quote_engine_operations_total",
    "Total number of service operations",
    ["operation", "outcome"],
)

operation_duration_seconds = Histogram(
    "quote_engine_operation_duration_seconds",
    "Time spent in service operations",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Quote lifecycle metrics
quotes_submitted_total = Counter(
    "quotes_submitted_total",
    "Total number of contractor quotes submitted",
)

quote_reviews_total = Counter(
    "quote_reviews_total",
    "Total number of admin quote decisions",
    ["decision"],
)

quote_selections_total = Counter(
    "quote_selections_total",
    "Total number of quotes selected by requesters",
)

assignment_responses_total = Counter(
    "assignment_responses_total",
    "Total number of contractor responses to assignments",
    ["response"],
)

# Penalty metrics
penalties_created_total = Counter(
    "penalties_created_total",
    "Total number of penalty instances created",
    ["penalty_type", "status"],
)

wallet_debit_failures_total = Counter(
    "wallet_debit_failures_total",
    "Total number of failed wallet penalty debits",
)

sla_violations_detected = Gauge(
    "sla_violations_detected",
    "SLA violations found by the most recent detection pass",
    ["severity"],
)

# Scheduler metrics
scheduler_runs_total = Counter(
    "scheduler_runs_total",
    "Total number of scheduler runs",
    ["job_type", "status"],
)

scheduler_last_run_timestamp = Gauge(
    "scheduler_last_run_timestamp",
    "Timestamp of last scheduler run",
    ["job_type"],
)

# Collaborator metrics
collaborator_requests_total = Counter(
    "collaborator_requests_total",
    "Total number of outbound collaborator requests",
    ["service", "status"],
)

collaborator_latency_seconds = Histogram(
    "collaborator_latency_seconds",
    "Outbound collaborator request latency",
    ["service"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)


def record_operation(operation: str, outcome: str, duration: float):
    """Record a finished service operation."""
    operations_total.labels(operation=operation, outcome=outcome).inc()
    operation_duration_seconds.labels(operation=operation).observe(duration)


def record_quote_review(decision: str):
    """Record an admin approval or rejection."""
    quote_reviews_total.labels(decision=decision).inc()


def record_penalty_created(penalty_type: str, status: str):
    """Record a penalty instance and the status it ended in."""
    penalties_created_total.labels(penalty_type=penalty_type, status=status).inc()


def record_sla_violations(severity_counts: dict[str, int]):
    """Update the SLA violation gauge with the latest per-severity counts."""
    for severity in ("minor", "moderate", "major", "critical"):
        sla_violations_detected.labels(severity=severity).set(severity_counts.get(severity, 0))


def record_collaborator_call(service: str, success: bool, duration: float):
    """Record an outbound collaborator call."""
    status = "success" if success else "error"
    collaborator_requests_total.labels(service=service, status=status).inc()
    collaborator_latency_seconds.labels(service=service).observe(duration)


def record_scheduler_run(job_type: str, success: bool):
    """Record a scheduler job run."""
    status = "success" if success else "error"
    scheduler_runs_total.labels(job_type=job_type, status=status).inc()
    scheduler_last_run_timestamp.labels(job_type=job_type).set(time.time())
