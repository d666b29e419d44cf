"""Tests for the metrics recorder and the lifecycle scheduler wiring."""

from types import SimpleNamespace

import pytest
from prometheus_client import CollectorRegistry

from courtbook.core.metrics import MetricsRecorder, PrometheusMetrics, get_metrics
from courtbook.services.booking_service import booking_service
from courtbook.services.scheduler import LifecycleScheduler


class TestPrometheusMetrics:
    """Counters and histograms kept in a per-app registry."""

    def test_counters_are_keyed_by_labels(self):
        metrics = PrometheusMetrics()

        metrics.increment("booking.conflict", kind="booking")
        metrics.increment("booking.conflict", kind="booking")
        metrics.increment("booking.conflict", kind="conflict")
        metrics.increment("booking.created")

        assert metrics.snapshot()["counters"] == {
            "booking.conflict{kind=booking}": 2,
            "booking.conflict{kind=conflict}": 1,
            "booking.created": 1,
        }

    def test_histogram_summary(self):
        metrics = PrometheusMetrics()
        for value in [10, 20, 30, 40]:
            metrics.observe("http.request.duration_ms", value, method="GET")

        summary = metrics.snapshot()["histograms"]["http.request.duration_ms{method=GET}"]

        assert summary["count"] == 4
        assert summary["sum"] == 100
        assert summary["avg"] == 25

    def test_recorders_do_not_share_state(self):
        first = PrometheusMetrics()
        second = PrometheusMetrics()

        first.increment("booking.created")

        assert second.snapshot()["counters"] == {}

    def test_uses_given_registry(self):
        registry = CollectorRegistry()
        metrics = PrometheusMetrics(registry)

        metrics.increment("booking.created", 3)

        assert registry.get_sample_value("courtbook_booking_created_total") == 3

    def test_exposition_format(self):
        metrics = PrometheusMetrics()
        metrics.increment("booking.conflict", kind="booking")
        metrics.observe("http.request.duration_ms", 12.5, method="POST")

        text = metrics.exposition().decode()

        assert 'courtbook_booking_conflict_total{kind="booking"} 1.0' in text
        assert 'courtbook_http_request_duration_ms_count{method="POST"} 1.0' in text

    def test_label_names_are_fixed_by_first_use(self):
        metrics = PrometheusMetrics()
        metrics.increment("booking.conflict", kind="booking")

        with pytest.raises(ValueError):
            metrics.increment("booking.conflict")

    def test_null_recorder_records_nothing(self):
        recorder = MetricsRecorder()
        recorder.increment("booking.created")
        recorder.observe("latency", 5)

        assert recorder.snapshot() == {"counters": {}, "histograms": {}}
        assert recorder.exposition() == b""

    def test_dependency_reads_app_state(self):
        metrics = PrometheusMetrics()
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(metrics=metrics)))

        assert get_metrics(request) is metrics

    def test_dependency_falls_back_to_null_recorder(self):
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

        assert type(get_metrics(request)) is MetricsRecorder


class TestLifecycleScheduler:
    """Starting and stopping the sweep job."""

    @pytest.mark.asyncio
    async def test_start_registers_sweep_job(self, session_factory):
        scheduler = LifecycleScheduler(session_factory)

        await scheduler.start()
        try:
            assert scheduler.running is True
            assert scheduler.scheduler.get_job("lifecycle_sweep") is not None
        finally:
            await scheduler.stop()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_sweep_runs_against_session_factory(self, session_factory, court, add_booking):
        await add_booking(court, "09:00", "10:00", on="2020-01-06")
        scheduler = LifecycleScheduler(session_factory)

        await scheduler._sweep()

        async with session_factory() as db:
            bookings = await booking_service.list_bookings(db, court_id=court.id)
        assert [b.status for b in bookings] == ["COMPLETED"]

    @pytest.mark.asyncio
    async def test_sweep_logs_failures(self, monkeypatch, caplog):
        scheduler = LifecycleScheduler()

        async def broken(session_factory, now=None):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(booking_service, "complete_finished_bookings", broken)

        await scheduler._sweep()

        assert "Error in lifecycle sweep" in caplog.text
