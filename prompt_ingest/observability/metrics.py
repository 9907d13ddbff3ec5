"""
Prometheus metrics collection for prompt-ingest

This module provides metrics instrumentation for monitoring
ingestion volume, data quality, publish outcomes and sync health.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# INGESTION METRICS
# =======================

# Rows produced by the parser
rows_parsed_total = Counter(
    name="ingest_rows_parsed_total",
    documentation="Total number of rows parsed from uploaded files",
    labelnames=["file_format"],  # file_format: csv, json
    registry=REGISTRY,
)

# Whole-file rejections
files_rejected_total = Counter(
    name="ingest_files_rejected_total",
    documentation="Total number of uploaded files rejected before any row was produced",
    labelnames=["reason"],  # reason: too_large, unsupported_type, malformed, empty
    registry=REGISTRY,
)

# =======================
# DATA QUALITY METRICS
# =======================

# Validation failures counter
validation_failures_total = Counter(
    name="ingest_validation_failures_total",
    documentation="Total number of per-row validation failures",
    labelnames=["rule_type", "field_name"],
    registry=REGISTRY,
)

# Ratio detection outcomes
ratio_detections_total = Counter(
    name="ingest_ratio_detections_total",
    documentation="Total number of image ratio detections",
    labelnames=["outcome"],  # outcome: detected, fallback, timeout
    registry=REGISTRY,
)

ratio_detection_duration_seconds = Histogram(
    name="ingest_ratio_detection_duration_seconds",
    documentation="Time spent detecting an image ratio",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

# =======================
# DRAFT METRICS
# =======================

autosaves_total = Counter(
    name="ingest_autosaves_total",
    documentation="Total number of draft snapshot writes",
    labelnames=["status"],  # status: success, failure
    registry=REGISTRY,
)

draft_rows = Gauge(
    name="ingest_draft_rows",
    documentation="Number of rows in the working upload batch",
    labelnames=["state"],  # state: valid, invalid
    registry=REGISTRY,
)

# =======================
# PUBLISH METRICS
# =======================

publish_results_total = Counter(
    name="ingest_publish_results_total",
    documentation="Total number of attempted record creates",
    labelnames=["status", "outcome"],  # outcome: success, failure
    registry=REGISTRY,
)

publish_batch_duration_seconds = Histogram(
    name="ingest_publish_batch_duration_seconds",
    documentation="Time spent creating one bounded publish batch",
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

category_meta_writes_total = Counter(
    name="ingest_category_meta_writes_total",
    documentation="Total number of category metadata upserts for new categories",
    labelnames=["outcome"],
    registry=REGISTRY,
)

category_cache_invalidations_total = Counter(
    name="ingest_category_cache_invalidations_total",
    documentation="Total number of category cache invalidations",
    registry=REGISTRY,
)

# =======================
# MODERATION SYNC METRICS
# =======================

moderation_events_total = Counter(
    name="moderation_events_total",
    documentation="Total number of change events applied to the moderation view",
    labelnames=["kind", "action"],  # action: inserted, replaced, removed, ignored, malformed
    registry=REGISTRY,
)

moderation_view_size = Gauge(
    name="moderation_view_size",
    documentation="Number of records currently in the moderation view",
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: the HTTP server is only needed when the endpoint is enabled
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


# =======================
# CONTEXT MANAGERS
# =======================

class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(publish_batch_duration_seconds):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        """
        Initialize duration tracker

        Args:
            histogram: Prometheus Histogram metric
            **labels: Label values for the metric
        """
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        """Start timer"""
        metric = self.histogram.labels(**self.labels) if self.labels else self.histogram
        self.timer = metric.time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop timer"""
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def set_gauge(gauge: Gauge, value: float, **labels) -> None:
    """
    Set a gauge metric value

    Args:
        gauge: Prometheus Gauge metric
        value: Value to set
        **labels: Label values for the metric
    """
    if labels:
        gauge.labels(**labels).set(value)
    else:
        gauge.set(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    if labels:
        histogram.labels(**labels).observe(value)
    else:
        histogram.observe(value)


# =======================
# PIPELINE-SPECIFIC HELPERS
# =======================

def record_validation_failure(rule_type: str, field_name: str) -> None:
    """
    Record a validation failure.

    Args:
        rule_type: Type of validation rule that failed
        field_name: Name of field that failed validation
    """
    increment_counter(validation_failures_total, 1, rule_type=rule_type, field_name=field_name)


def record_batch_state(valid_rows: int, invalid_rows: int) -> None:
    """
    Record the current shape of the working upload batch.

    Args:
        valid_rows: Rows carrying a normalized payload
        invalid_rows: Rows blocked by validation errors
    """
    set_gauge(draft_rows, valid_rows, state="valid")
    set_gauge(draft_rows, invalid_rows, state="invalid")


def record_publish_outcome(status: str, succeeded: int, failed: int) -> None:
    """
    Record the aggregate outcome of one publish call.

    Args:
        status: Target status the records were created with
        succeeded: Number of created records
        failed: Number of rejected records
    """
    if succeeded:
        increment_counter(publish_results_total, succeeded, status=status, outcome="success")
    if failed:
        increment_counter(publish_results_total, failed, status=status, outcome="failure")
