"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from jobqueue.constants import (
    METRIC_BATCH_ITEM_FAILURES,
    METRIC_HOOK_FAILURES,
    METRIC_JOB_DURATION,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_PROCESSED,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for producers and the worker.

    Collects metrics for:
    - Jobs enqueued, by route (immediate, delayed, scheduled)
    - Jobs processed, by outcome
    - Job execution duration
    - Batch item failures
    - Hook failures
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            ["job_name", "route"],
            registry=self._registry,
        )

        self.jobs_processed = Counter(
            METRIC_JOBS_PROCESSED,
            "Total number of job deliveries processed",
            ["job_name", "outcome"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["job_name", "outcome"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0),
            registry=self._registry,
        )

        self.batch_item_failures = Counter(
            METRIC_BATCH_ITEM_FAILURES,
            "Total number of batch records reported back as failed",
            registry=self._registry,
        )

        self.hook_failures = Counter(
            METRIC_HOOK_FAILURES,
            "Total number of worker hooks that raised",
            ["hook"],
            registry=self._registry,
        )

    def record_job_enqueued(self, job_name: str, route: str) -> None:
        """Record a job handed to the queue or scheduler."""
        self.jobs_enqueued.labels(job_name=job_name, route=route).inc()

    def record_job_processed(
        self,
        job_name: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record the outcome of one delivery."""
        self.jobs_processed.labels(job_name=job_name, outcome=outcome).inc()
        self.job_duration.labels(job_name=job_name, outcome=outcome).observe(duration_seconds)

    def record_batch_item_failure(self, count: int = 1) -> None:
        """Record batch records returned for redelivery."""
        self.batch_item_failures.inc(count)

    def record_hook_failure(self, hook: str) -> None:
        """Record a hook that raised."""
        self.hook_failures.labels(hook=hook).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
