"""
==============================================================================
HMPI Monitor - Observability
==============================================================================
Structured JSON logging and Prometheus counters shared by every component
"""

import json
import logging
import sys
from datetime import datetime, timezone

from prometheus_client import Counter, start_http_server
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

# Prometheus Metrics
SOURCE_REQUESTS = Counter(
    'hmpi_source_requests_total',
    'Data source collection attempts by outcome.',
    ['source', 'outcome']
)
FALLBACK_ACTIVATIONS = Counter(
    'hmpi_fallback_activations_total',
    'Times every live source failed and simulated data was served.'
)
READINGS_INGESTED = Counter(
    'hmpi_readings_ingested_total',
    'Normalized readings appended to the time-series store.'
)
ALERTS_RAISED = Counter(
    'hmpi_alerts_raised_total',
    'Alerts raised by the time-series store.',
    ['severity']
)

_configured = False


def configure_logging(component: str, level: str = "INFO"):
    """Route the root logger to stdout as JSON and tag records with the component"""
    global _configured

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(component)s %(message)s',
        rename_fields={'asctime': 'timestamp', 'levelname': 'level'}
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    if not _configured:
        old_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            if not hasattr(record, 'component'):
                record.component = component
            return record

        logging.setLogRecordFactory(record_factory)
        _configured = True


def log_event(log, event_type, message, data=None, severity="info"):
    """
    Structured logging helper

    Args:
        log: Logger of the calling module
        event_type (str): Type of event (e.g. 'source_failed', 'fallback_activated')
        message (str): Human-readable message
        data (dict): Additional structured data
        severity (str): Log level (debug, info, warning, error, critical)
    """
    log_data = {
        "event_type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    if data:
        log_data.update(data)

    level = getattr(logging, severity.upper(), logging.INFO)
    log.log(level, f"{message} | {json.dumps(log_data, default=str)}")


def start_metrics_server(port: int):
    start_http_server(port)
    logger.info(f"📈 Prometheus metrics server started on port {port}")
