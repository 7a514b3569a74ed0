"""Prometheus metrics instrumentation for campaign automation.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus custom business metrics.
- ``ACTIVE_RUNS``: Gauge tracking automation runs currently in progress.
- ``RUNS_FINISHED``: Counter of runs reaching a terminal status, by status.
- ``DISPATCH_OUTCOMES``: Counter of fan-out item outcomes, by stage and outcome.

Business metrics are updated by the pipeline controller as runs progress
(not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

ACTIVE_RUNS: Gauge = Gauge(
    "campaign_automation_active_runs",
    "Number of automation runs currently in progress",
)

RUNS_FINISHED: Counter = Counter(
    "campaign_automation_runs_finished_total",
    "Total number of automation runs reaching a terminal status",
    ["status"],
)

DISPATCH_OUTCOMES: Counter = Counter(
    "campaign_automation_dispatch_items_total",
    "Fan-out items processed by the bulk dispatch engine",
    ["stage", "outcome"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
