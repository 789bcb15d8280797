"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics and order capture counters.
Scrape it from the internal network only.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

# HTTP
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'HTTP requests currently being processed',
    registry=_metric_registry
)

# Order capture
orders_placed_total = Counter(
    'orders_placed_total',
    'Orders stored at checkout',
    ['mode'],  # new | edit
    registry=_metric_registry
)

order_value = Histogram(
    'order_value',
    'Regular subtotal of orders stored at checkout',
    registry=_metric_registry,
    buckets=(100, 250, 500, 1000, 2500, 5000, 10000, 25000)
)

cart_mutations_total = Counter(
    'cart_mutations_total',
    'Cart mutations by operation',
    ['operation'],  # increment | decrement | choice
    registry=_metric_registry
)

cache_requests_total = Counter(
    'cache_requests_total',
    'Cache-aside lookups',
    ['namespace', 'result'],  # hit | miss
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Time every request except the scrape itself."""

    @app.before_request
    def before_request_metrics():
        if request.endpoint == 'metrics.metrics':
            return
        g._metrics_start = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        start = g.pop('_metrics_start', None)
        if start is None:
            return response
        try:
            endpoint = request.endpoint or 'unknown'
            http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(time.time() - start)
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, http_status=response.status_code
            ).inc()
        except Exception as e:
            app.logger.warning(f"Failed to record metrics: {e}")
        finally:
            http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus scrape endpoint (unauthenticated)."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
