"""Prometheus metrics for deployment runs.

A preview deployment is a short-lived job, so metrics are pushed to a
Pushgateway at the end of the run instead of being scraped.
"""

from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

logger = structlog.get_logger(__name__)

PUSH_JOB_NAME = "preview_deploy"


class DeployMetrics:
    """Prometheus metrics for one deployment run."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.reconciliations_total = Counter(
            "preview_deploy_reconciliations_total",
            "Reconciliation runs",
            ["action", "status"],
            registry=self.registry,
        )
        self.errors_total = Counter(
            "preview_deploy_errors_total",
            "Fatal reconciliation errors",
            ["error_type"],
            registry=self.registry,
        )
        self.duration_seconds = Histogram(
            "preview_deploy_duration_seconds",
            "Reconciliation duration",
            registry=self.registry,
        )
        self.stage_duration_seconds = Histogram(
            "preview_deploy_stage_duration_seconds",
            "Awaited pipeline stage duration",
            ["stage"],
            buckets=(10, 30, 60, 120, 300, 600, 1200, 1800, float("inf")),
            registry=self.registry,
        )

    def record_success(self, action: str, duration: float):
        self.reconciliations_total.labels(action=action, status="success").inc()
        self.duration_seconds.observe(duration)

    def record_failure(self, error_type: str, duration: float, action: str = "unknown"):
        self.reconciliations_total.labels(action=action, status="error").inc()
        self.errors_total.labels(error_type=error_type).inc()
        self.duration_seconds.observe(duration)

    def record_stage(self, stage: str, duration: float):
        self.stage_duration_seconds.labels(stage=stage).observe(duration)

    def push(self, gateway_url: str) -> bool:
        """Push metrics to the gateway; failures are logged, not raised."""
        if not gateway_url:
            return False
        try:
            push_to_gateway(gateway_url, job=PUSH_JOB_NAME, registry=self.registry)
            logger.debug("Metrics pushed to gateway", gateway_url=gateway_url)
            return True
        except Exception as e:
            logger.warning("Failed to push metrics", gateway_url=gateway_url, error=str(e))
            return False
