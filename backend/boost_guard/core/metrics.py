"""
Prometheus metrics configuration
"""
import os

from prometheus_client import (CONTENT_TYPE_LATEST, Counter, Histogram, Info,
                               generate_latest)
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import REGISTRY, CollectorRegistry

from boost_guard import __version__
from boost_guard.core.config import get_settings

# Multiprocess mode (several uvicorn workers)
_registry = REGISTRY
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    _registry = CollectorRegistry()
    MultiProcessCollector(_registry)

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# Status / Issuance Metrics
# ============================================================================

status_requests_total = Counter(
    'status_requests_total',
    'Total number of status evaluations',
    ['outcome']  # outcome: 'signed', 'zero', 'not_found', or an error code
)

signatures_issued_total = Counter(
    'signatures_issued_total',
    'Total number of claim signatures issued',
    ['chain_id']
)

entitlement_clamped_total = Counter(
    'entitlement_clamped_total',
    'Strategy results clamped to the funded balance or to zero',
    ['strategy']
)

strategy_failures_total = Counter(
    'strategy_failures_total',
    'Strategy evaluations that raised and were failed closed',
    ['strategy']
)

ledger_conflicts_total = Counter(
    'ledger_conflicts_total',
    'Concurrent claim ledger writes detected',
    []
)

strategy_evaluation_seconds = Histogram(
    'strategy_evaluation_seconds',
    'Strategy evaluation duration in seconds (fact loading included)',
    ['strategy'],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0)
)

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'db_queries_total',
    'Total number of database queries',
    ['operation']  # operation: 'select', 'insert', 'update', 'delete'
)

db_query_duration_seconds = Histogram(
    'db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
)

# ============================================================================
# System Info
# ============================================================================

app_info = Info(
    'app_info',
    'Application information'
)

_settings = get_settings()
app_info.info({
    'app_name': _settings.app_name,
    'app_env': _settings.app_env,
    'version': __version__,
})


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format"""
    return generate_latest(_registry)


def get_metrics_content_type() -> str:
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
