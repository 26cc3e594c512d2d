"""
Tests for the real-time monitor and its command line runner
"""

import json
import threading
from unittest.mock import MagicMock

import pytest

from common.config import DISCONNECTED_SOURCE_LABEL, FALLBACK_SOURCE_LABEL, Settings
from common.models import ApiResponse
from realtime_monitor import main as cli
from realtime_monitor.monitor import CONNECTED, DISCONNECTED, RECONNECTING, RealTimeMonitor
from timeseries_store.store import TimeSeriesStore


@pytest.fixture
def live(make_reading):
    def make(*readings):
        return ApiResponse(success=True, source="Live label", data=list(readings) or [make_reading()])
    return make


@pytest.fixture
def simulated(make_reading):
    def make():
        return ApiResponse(success=True, source=FALLBACK_SOURCE_LABEL,
                           data=[make_reading(synthetic=True)], synthetic=True)
    return make


def disconnected():
    return ApiResponse(success=False, source=DISCONNECTED_SOURCE_LABEL, data=[], error="All data sources failed")


@pytest.fixture
def monitor_factory(rng, clock):
    def make(*responses, settings=None):
        gateway = MagicMock()
        gateway.fetch_real_time_data.side_effect = list(responses)
        store = TimeSeriesStore(rng=rng, clock=clock)
        return RealTimeMonitor(gateway, store, settings or Settings(), clock=clock)
    return make


class TestPolling:

    def test_live_poll_connects_and_ingests(self, monitor_factory, live, now):
        monitor = monitor_factory(live())

        response = monitor.poll_once()

        assert response.success
        assert monitor.status == CONNECTED
        assert monitor.data_source == "Live label"
        assert monitor.last_updated == now
        assert not monitor.synthetic
        assert len(monitor.store) == 1
        assert monitor.store.alerts == []

    def test_fallback_transition_alerts_once(self, monitor_factory, live, simulated):
        monitor = monitor_factory(simulated(), simulated(), live(), simulated())

        for _ in range(4):
            monitor.poll_once()

        failures = [a for a in monitor.store.alerts if a.type == "system_failure"]
        assert len(failures) == 2
        assert all(a.severity == "high" for a in failures)
        assert failures[0].location == "All monitored sites"
        assert monitor.synthetic

    def test_failure_disconnects(self, monitor_factory):
        monitor = monitor_factory(disconnected())

        response = monitor.poll_once()

        assert not response.success
        assert monitor.status == DISCONNECTED
        assert monitor.last_error == "All data sources failed"
        assert len(monitor.store) == 0

    def test_reconnecting_while_retrying_after_a_drop(self, monitor_factory, live):
        seen = []
        monitor = monitor_factory()
        responses = iter([live(), disconnected(), live()])

        def fetch():
            seen.append(monitor.status)
            return next(responses)

        monitor.gateway.fetch_real_time_data.side_effect = fetch
        for _ in range(3):
            monitor.poll_once()

        assert seen == [DISCONNECTED, CONNECTED, RECONNECTING]
        assert monitor.status == CONNECTED

    def test_overlapping_poll_is_skipped(self, monitor_factory, live):
        entered, release = threading.Event(), threading.Event()
        monitor = monitor_factory()

        def slow_fetch():
            entered.set()
            release.wait(5)
            return live()

        monitor.gateway.fetch_real_time_data.side_effect = slow_fetch
        worker = threading.Thread(target=monitor.poll_once)
        worker.start()
        assert entered.wait(5)

        assert monitor.poll_once() is None

        release.set()
        worker.join(5)
        assert monitor.gateway.fetch_real_time_data.call_count == 1
        assert monitor.status == CONNECTED

    def test_subscribers_see_synthetic_state(self, monitor_factory, simulated):
        monitor = monitor_factory(simulated())
        seen = []
        monitor.subscribe(lambda readings, alerts: seen.append(monitor.synthetic))

        monitor.poll_once()

        assert seen and all(seen)


class TestConsumers:

    def test_analyze_flags_synthetic_data(self, monitor_factory, simulated):
        monitor = monitor_factory(simulated())
        monitor.poll_once()

        insights, summary = monitor.analyze()

        assert summary.synthetic
        assert summary.total_insights == len(insights)

    def test_analyze_stays_synthetic_after_live_recovery(self, monitor_factory, live, simulated):
        monitor = monitor_factory(simulated(), live())
        monitor.poll_once()
        monitor.poll_once()
        assert not monitor.synthetic
        assert any(r.synthetic for r in monitor.store.history)

        insights, summary = monitor.analyze()

        assert summary.synthetic
        assert all(i.data_points.get("synthetic") for i in insights)

    def test_analyze_live_only_history_is_not_synthetic(self, monitor_factory, live):
        monitor = monitor_factory(live())
        monitor.poll_once()

        _, summary = monitor.analyze()

        assert not summary.synthetic

    def test_passthroughs(self, monitor_factory, live, make_reading):
        monitor = monitor_factory(live(make_reading(location="Delhi Yamuna", metals={"Lead": 20.0})))
        monitor.poll_once()

        alert = monitor.store.alerts[0]
        assert monitor.acknowledge_alert(alert.id).acknowledged
        assert monitor.latest_reading("Delhi Yamuna").metal("Lead").value == 20.0
        assert [m.value for m in monitor.metal_trend("Lead")] == [20.0]

        snapshot = monitor.snapshot()
        assert snapshot["status"] == CONNECTED
        assert snapshot["alerts"] == 1
        assert snapshot["unacknowledged_alerts"] == 0

    def test_start_and_stop(self, monitor_factory, live):
        polled = threading.Event()
        monitor = monitor_factory(settings=Settings(refresh_interval_ms=10))

        def fetch():
            polled.set()
            return live()

        monitor.gateway.fetch_real_time_data.side_effect = fetch
        monitor.start()
        assert polled.wait(5)
        assert monitor.running

        monitor.stop(timeout=5)
        assert not monitor.running

    def test_loop_survives_a_crashing_gateway(self, monitor_factory):
        monitor = monitor_factory()

        def crash():
            monitor._stop_event.set()
            raise RuntimeError("gateway bug")

        monitor.gateway.fetch_real_time_data.side_effect = crash
        monitor._run()

        assert monitor.status == DISCONNECTED
        assert monitor.last_error == "gateway bug"
        # the in-flight lock is released even when the poll raises
        assert monitor._in_flight.acquire(blocking=False)


class TestCommandLine:

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
        for name in ("DATA_REFRESH_INTERVAL", "REQUEST_TIMEOUT_SECONDS", "MAX_HISTORY", "MAX_ALERTS"):
            monkeypatch.delenv(name, raising=False)

    def test_once_prints_analysis(self, monkeypatch, capsys, monitor_factory, simulated):
        monitor = monitor_factory(simulated())
        monkeypatch.setattr(cli, "build_monitor", lambda settings, session: monitor)

        assert cli.main(["--once"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["status"]["status"] == CONNECTED
        assert output["status"]["synthetic"] is True
        assert output["summary"]["synthetic"] is True
        assert isinstance(output["insights"], list)

    def test_once_reports_disconnection(self, monkeypatch, capsys, monitor_factory):
        monitor = monitor_factory(disconnected())
        monkeypatch.setattr(cli, "build_monitor", lambda settings, session: monitor)

        assert cli.main(["--once"]) == 1
        assert json.loads(capsys.readouterr().out)["status"]["status"] == DISCONNECTED

    def test_invalid_configuration(self, monkeypatch, capsys):
        monkeypatch.setenv("DATA_REFRESH_INTERVAL", "often")
        assert cli.main(["--once"]) == 2
        assert "DATA_REFRESH_INTERVAL" in capsys.readouterr().err

    def test_cli_overrides(self, monkeypatch, monitor_factory, live):
        captured = {}

        def build(settings, session):
            captured["settings"] = settings
            return monitor_factory(live())

        monkeypatch.setattr(cli, "build_monitor", build)
        cli.main(["--once", "--interval", "5000", "--no-fallback"])

        assert captured["settings"].refresh_interval_ms == 5000
        assert captured["settings"].enable_simulation_fallback is False
