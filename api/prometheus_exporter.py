"""Prometheus exporter: counts multi-search round trips and their outcomes.

Exposed in Prometheus text format on each scrape. Values live in a dedicated
registry so tests and the service never mix with the default process metrics.
"""

import logging

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

log = logging.getLogger(__name__)

# Dedicated registry so we don't mix with prometheus_client default metrics
_registry = CollectorRegistry()

msearch_requests = Counter(
    "esds_msearch_requests_total",
    "Multi-search round trips issued, by kind (query or terms)",
    ["kind"],
    registry=_registry,
)
msearch_errors = Counter(
    "esds_msearch_errors_total",
    "Failed multi-search round trips, by kind and failure class (engine or transport)",
    ["kind", "reason"],
    registry=_registry,
)
batch_queries = Histogram(
    "esds_batch_queries",
    "Number of panel queries carried by one multi-search payload",
    buckets=(1, 2, 4, 8, 16, 32),
    registry=_registry,
)
meta_queries = Counter(
    "esds_meta_queries_total",
    "Metric-find requests, by find target",
    ["find"],
    registry=_registry,
)


def generate() -> bytes:
    """Return the current metrics in Prometheus text format."""
    return generate_latest(_registry)


def sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Read one sample from the registry (0.0 when it was never recorded)."""
    value = _registry.get_sample_value(name, labels or {})
    return value or 0.0
