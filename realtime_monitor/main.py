"""
==============================================================================
HMPI Monitor - Command Line Runner
==============================================================================
Runs the polling loop: gateway -> store -> insights, logging a summary after
every poll.

ENVIRONMENT VARIABLES:
- WAQI_API_KEY, BACKUP_API_URL, EPA_EMAIL, EPA_KEY
- DATA_REFRESH_INTERVAL (ms), ENABLE_SIMULATION_FALLBACK
- METRICS_PORT, LOG_LEVEL, LOCATIONS_FILE
==============================================================================
"""

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import replace

import requests

from aggregation_gateway.gateway import AggregationGateway
from common.config import Settings
from common.observability import configure_logging, log_event, start_metrics_server
from realtime_monitor.monitor import RealTimeMonitor
from source_adapters.adapters import default_adapters
from timeseries_store.store import TimeSeriesStore

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="hmpi-monitor", description="Heavy Metal Pollution Index monitor")
    parser.add_argument("--once", action="store_true", help="poll a single time, print the analysis and exit")
    parser.add_argument("--interval", type=int, help="refresh interval in milliseconds")
    parser.add_argument("--metrics-port", type=int, help="serve Prometheus metrics on this port")
    parser.add_argument("--no-fallback", action="store_true", help="disable simulated fallback data")
    parser.add_argument("--log-level", help="logging level (default from LOG_LEVEL)")
    return parser.parse_args(argv)


def build_monitor(settings: Settings, session: requests.Session) -> RealTimeMonitor:
    gateway = AggregationGateway(adapters=default_adapters(settings, session), settings=settings)
    store = TimeSeriesStore(max_history=settings.max_history, max_alerts=settings.max_alerts)
    return RealTimeMonitor(gateway, store, settings)


def log_analysis(monitor: RealTimeMonitor):
    insights, summary = monitor.analyze()
    log_event(logger, "analysis_summary", f"📊 Risk level {summary.risk_level}, trend {summary.trending_direction}",
              {**summary.to_dict(), **monitor.snapshot()})
    return insights, summary


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = Settings.from_env()
        overrides = {}
        if args.interval:
            overrides["refresh_interval_ms"] = args.interval
        if args.no_fallback:
            overrides["enable_simulation_fallback"] = False
        if args.log_level:
            overrides["log_level"] = args.log_level.upper()
        if overrides:
            settings = replace(settings, **overrides)
            settings.validate()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging("hmpi-monitor", settings.log_level)

    session = requests.Session()
    try:
        monitor = build_monitor(settings, session)
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        session.close()
        return 2

    if args.once:
        try:
            monitor.poll_once()
            insights, summary = log_analysis(monitor)
            print(json.dumps({
                "status": monitor.snapshot(),
                "summary": summary.to_dict(),
                "insights": [i.to_dict() for i in insights],
            }, indent=2, default=str))
        finally:
            session.close()
        return 0 if monitor.status != "disconnected" else 1

    if args.metrics_port or settings.metrics_port:
        start_metrics_server(args.metrics_port or settings.metrics_port)

    stopped = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stopped.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    def on_update(readings, alerts):
        if readings:
            log_analysis(monitor)

    monitor.subscribe(on_update)
    logger.info("🚀 HMPI monitor starting")
    monitor.start()
    try:
        stopped.wait()
    finally:
        monitor.stop(timeout=settings.request_timeout * 2)
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
