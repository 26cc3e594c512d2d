"""
Tests for the rolling time-series store and its alert side effects
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from timeseries_store.store import TimeSeriesStore, make_alert

CRITICAL_LEAD = {"Lead": 20.0, "Cadmium": 1.0}
WARNING_LEAD = {"Lead": 12.0, "Cadmium": 1.0}


@pytest.fixture
def store(rng, clock):
    return TimeSeriesStore(rng=rng, clock=clock)


def fixed_rng(value):
    rng = MagicMock()
    rng.random.return_value = value
    return rng


class TestAppendAndAlerts:

    def test_critical_metal_raises_threshold_alert(self, store, make_reading):
        alerts = store.append([make_reading(location="Delhi Yamuna", metals=CRITICAL_LEAD)])

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == "threshold_exceeded"
        assert alert.severity == "critical"
        assert alert.location == "Delhi Yamuna"
        assert alert.message.startswith("Critical Lead level detected: 20")
        assert alert.id.startswith("alert_")
        assert not alert.acknowledged
        assert store.alerts == alerts

    def test_normal_readings_raise_nothing(self, store, make_reading):
        assert store.append([make_reading(), make_reading(location="Mumbai Mithi")]) == []
        assert store.alerts == []

    def test_warning_alert_depends_on_random_draw(self, clock, make_reading):
        raised = TimeSeriesStore(rng=fixed_rng(0.1), clock=clock).append([make_reading(metals=WARNING_LEAD)])
        skipped = TimeSeriesStore(rng=fixed_rng(0.9), clock=clock).append([make_reading(metals=WARNING_LEAD)])

        assert len(raised) == 1
        assert raised[0].type == "pollution_spike"
        assert raised[0].severity == "medium"
        assert raised[0].message.startswith("Elevated Lead level detected")
        assert skipped == []

    def test_at_most_one_alert_per_reading(self, store, make_reading):
        reading = make_reading(metals={"Lead": 30.0, "Cadmium": 9.0, "Mercury": 20.0})
        assert len(store.append([reading])) == 1

    def test_critical_takes_precedence_over_warning(self, clock, make_reading):
        rng = fixed_rng(0.0)
        store = TimeSeriesStore(rng=rng, clock=clock)
        alerts = store.append([make_reading(metals={"Lead": 12.0, "Cadmium": 9.0})])

        assert alerts[0].severity == "critical"
        assert "Cadmium" in alerts[0].message
        rng.random.assert_not_called()

    def test_history_is_never_realerted(self, store, make_reading):
        store.append([make_reading(metals=CRITICAL_LEAD)])
        store.append([make_reading()])
        assert len(store.alerts) == 1

    def test_alerts_capped_newest_first(self, rng, clock, make_reading, now):
        store = TimeSeriesStore(max_alerts=3, rng=rng, clock=clock)
        for i in range(5):
            store.append([make_reading(location=f"Site {i}", metals=CRITICAL_LEAD,
                                       timestamp=now + timedelta(minutes=i))])

        assert [a.location for a in store.alerts] == ["Site 4", "Site 3", "Site 2"]

    def test_record_alert(self, store):
        alert = make_alert("system_failure", "high", "All sources down", "All monitored sites")
        store.record_alert(alert)
        assert store.alerts[0] is alert


class TestHistory:

    def test_history_capped_keeping_newest(self, clock, make_reading, now):
        store = TimeSeriesStore(max_history=1000, clock=clock)
        readings = [make_reading(hmpi=float(i), timestamp=now + timedelta(seconds=i)) for i in range(1050)]
        store.append(readings)

        assert len(store) == 1000
        assert store.history[0].hmpi == 50.0
        assert store.history[-1].hmpi == 1049.0

    def test_batch_is_stored_in_timestamp_order(self, store, make_reading, now):
        later = make_reading(hmpi=2.0, timestamp=now)
        earlier = make_reading(hmpi=1.0, timestamp=now - timedelta(hours=1))
        store.append([later, earlier])

        assert [r.hmpi for r in store.history] == [1.0, 2.0]
        assert [r.hmpi for r in store.current] == [1.0, 2.0]

    def test_current_is_last_batch(self, store, make_reading):
        store.append([make_reading(location="A")])
        store.append([make_reading(location="B"), make_reading(location="C")])
        assert [r.location for r in store.current] == ["B", "C"]
        assert len(store) == 3

    def test_query(self, store, make_reading, now):
        store.append([make_reading(location="A", hmpi=10.0, timestamp=now - timedelta(hours=2))])
        store.append([make_reading(location="A", hmpi=20.0, timestamp=now - timedelta(hours=1))])

        assert len(store.query()) == 2
        assert store.query("A").hmpi == 20.0
        assert store.query("Nowhere") is None


class TestTrend:

    def test_window_and_order(self, store, make_reading, now):
        store.append([
            make_reading(location="A", metals={"Lead": 3.0}, timestamp=now - timedelta(hours=30)),
            make_reading(location="A", metals={"Lead": 5.0}, timestamp=now - timedelta(hours=2)),
            make_reading(location="B", metals={"Lead": 4.0}, timestamp=now - timedelta(hours=5)),
            make_reading(location="C", metals={"Cadmium": 1.0}, timestamp=now - timedelta(hours=1)),
        ])

        points = store.trend("Lead", 24)

        assert [p.value for p in points] == [4.0, 5.0]
        assert [p.location for p in points] == ["B", "A"]
        assert points[0].timestamp == now - timedelta(hours=5)

    def test_provider_key_is_accepted(self, store, make_reading):
        store.append([make_reading(metals={"Lead": 3.0})])
        assert len(store.trend("pb", 1)) == 1

    def test_unknown_metal(self, store, make_reading):
        store.append([make_reading()])
        assert store.trend("Uranium", 24) == []


class TestAcknowledgeAndSubscribe:

    def test_acknowledge(self, store, make_reading):
        alert = store.append([make_reading(metals=CRITICAL_LEAD)])[0]

        acknowledged = store.acknowledge_alert(alert.id)

        assert acknowledged.acknowledged
        assert acknowledged.id == alert.id
        assert store.alerts[0].acknowledged
        assert store.acknowledge_alert("alert_missing") is None

    def test_subscribers_see_batches_and_alerts(self, store, make_reading):
        callback = MagicMock()
        unsubscribe = store.subscribe(callback)

        store.append([make_reading(metals=CRITICAL_LEAD)])
        readings, alerts = callback.call_args[0]
        assert len(readings) == 1
        assert len(alerts) == 1

        unsubscribe()
        store.append([make_reading()])
        assert callback.call_count == 1

    def test_failing_subscriber_does_not_break_others(self, store, make_reading):
        store.subscribe(MagicMock(side_effect=RuntimeError("broken ui")))
        healthy = MagicMock()
        store.subscribe(healthy)

        store.append([make_reading()])

        assert len(store) == 1
        healthy.assert_called_once()

    def test_unsubscribe_twice_is_harmless(self, store):
        unsubscribe = store.subscribe(MagicMock())
        unsubscribe()
        unsubscribe()
