"""
Prometheus metrics blueprint.

Request latency per blueprint endpoint plus POS business counters, exposed at
/metrics. Keep the route off the public network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram,
    generate_latest, multiprocess
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are aggregated on scrape
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    _metric_registry = None

    def _scrape_registry():
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
else:
    _metric_registry = REGISTRY

    def _scrape_registry():
        return REGISTRY

# POS screen interactions are short; checkout and PDFs sit in the upper buckets
POS_LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)

pos_request_seconds = Histogram(
    'pos_request_seconds',
    'Request latency by endpoint',
    ['method', 'endpoint'],
    buckets=POS_LATENCY_BUCKETS,
    registry=_metric_registry
)

pos_requests_total = Counter(
    'pos_requests_total',
    'Requests by endpoint and status code',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

pos_requests_active = Gauge(
    'pos_requests_active',
    'Requests being served',
    registry=_metric_registry
)

pos_orders_completed_total = Counter(
    'pos_orders_completed_total',
    'Orders completed at the POS',
    ['payment_status'],
    registry=_metric_registry
)

pos_drafts_saved_total = Counter(
    'pos_drafts_saved_total',
    'Draft orders saved at the POS',
    ['action'],
    registry=_metric_registry
)

pos_stock_rejections_total = Counter(
    'pos_stock_rejections_total',
    'Cart mutations rejected by stock admission',
    ['reason'],
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Time every request except the scrape itself."""

    @app.before_request
    def start_request_timer():
        if request.endpoint == 'metrics.metrics':
            return
        g.pos_request_started = time.perf_counter()
        pos_requests_active.inc()

    @app.after_request
    def record_request(response):
        started = g.pop('pos_request_started', None)
        if started is None:
            return response

        endpoint = request.endpoint or 'unmatched'
        pos_request_seconds.labels(request.method, endpoint).observe(time.perf_counter() - started)
        pos_requests_total.labels(request.method, endpoint, response.status_code).inc()
        pos_requests_active.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(_scrape_registry()), mimetype=CONTENT_TYPE_LATEST)
