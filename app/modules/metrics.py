import logging

from prometheus_client import Gauge, Counter, REGISTRY, push_to_gateway

logger = logging.getLogger(__name__)

# Service metrics
kubecost_export_http_requests_total = Counter(
    'kubecost_export_http_requests_total',
    'Total number of HTTP requests to the exporter API',
    ['method', 'endpoint', 'status']
)

# Export metrics
kubecost_export_fetch_attempts_total = Counter(
    'kubecost_export_fetch_attempts_total',
    'HTTP attempts made against the Kubecost allocation API',
    ['kind']
)

kubecost_export_rows_appended_total = Counter(
    'kubecost_export_rows_appended_total',
    'Rows appended to persisted datasets',
    ['kind', 'dataset']
)

kubecost_export_failures_total = Counter(
    'kubecost_export_failures_total',
    'Failed exports by resource kind and pipeline stage',
    ['kind', 'stage']
)

kubecost_export_last_success_timestamp_seconds = Gauge(
    'kubecost_export_last_success_timestamp_seconds',
    'Unix time of the last successful export',
    ['kind']
)

kubecost_export_duration_seconds = Gauge(
    'kubecost_export_duration_seconds',
    'Duration of the last export run',
    ['kind']
)


def push_metrics(pushgateway_url: str, job: str = 'kubecost_export') -> bool:
    """
    Push metrics to Prometheus Pushgateway
    """
    try:
        push_to_gateway(pushgateway_url, job=job, registry=REGISTRY)
        logger.info(f"Successfully pushed metrics to Prometheus Pushgateway as job '{job}'")
        return True
    except Exception as e:
        logger.error(f"Failed to push metrics to Prometheus Pushgateway: {e}")
        return False
