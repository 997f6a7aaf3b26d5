"""
Integration tests for core/observability.py

Tests report-run context, log formatting, timing, and report metrics.
"""
import logging
import json
import pytest
import time as time_module

from core.observability import (
    get_run_id,
    get_run_fields,
    report_run,
    Timer,
    ReportMetrics,
    StructuredFormatter,
    HumanReadableFormatter,
    get_logger,
    metrics,
)
from core.reports import ReportEngine


def _record(msg: str = "Report degraded", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="core.reports",
        level=logging.ERROR,
        pathname="reports.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestReportRun:
    """Tests for report_run scoping."""

    def test_outside_run(self):
        assert get_run_id() is None
        assert get_run_fields() == {}

    def test_fields_set_and_restored(self):
        with report_run("low_stock", threshold=5) as run_id:
            assert len(run_id) == 8
            assert get_run_id() == run_id
            assert get_run_fields() == {"report_type": "low_stock", "threshold": 5}
        assert get_run_id() is None
        assert get_run_fields() == {}

    def test_explicit_run_id(self):
        with report_run("daily_sales", run_id="cli-1") as run_id:
            assert run_id == "cli-1"

    def test_nested_run_shares_id(self):
        """Inner reports of a dashboard log under the dashboard's run id."""
        with report_run("dashboard") as outer_id:
            with report_run("daily_sales") as inner_id:
                assert inner_id == outer_id
                assert get_run_fields()["parent_report"] == "dashboard"
            assert get_run_fields() == {"report_type": "dashboard"}


class TestTimer:
    """Tests for Timer context manager."""

    def test_measures_elapsed_time(self):
        """Timer measures elapsed time correctly."""
        with Timer("daily_sales compute") as timer:
            time_module.sleep(0.05)

        assert timer.elapsed_ms >= 45
        assert timer.elapsed_ms < 1000

    def test_logs_completion(self, caplog):
        """Timer logs a completion line with the duration."""
        logger = get_logger("test.timer")
        with caplog.at_level(logging.DEBUG, logger="test.timer"):
            with Timer("sales_trend compute", logger):
                pass

        assert caplog.records[-1].getMessage() == "sales_trend compute completed"
        assert caplog.records[-1].levelno == logging.DEBUG
        assert hasattr(caplog.records[-1], "duration_ms")

    def test_slow_compute_warns(self, caplog):
        logger = get_logger("test.timer")
        with caplog.at_level(logging.DEBUG, logger="test.timer"):
            with Timer("inventory_valuation compute", logger, slow_ms=0):
                time_module.sleep(0.001)

        assert caplog.records[-1].levelno == logging.WARNING


class TestReportMetrics:
    """Tests for ReportMetrics class."""

    def test_runs_and_degraded(self):
        collector = ReportMetrics()
        collector.record_run("daily_sales")
        collector.record_run("daily_sales")
        collector.record_run("low_stock")
        collector.record_degraded("daily_sales", "SnapshotFetchError")

        stats = collector.get_stats()
        assert stats["runs"] == {"daily_sales": 2, "low_stock": 1}
        assert stats["degraded"] == {"daily_sales": {"SnapshotFetchError": 1}}
        assert stats["degradedRatio"] == {"daily_sales": 0.5, "low_stock": 0.0}

    def test_degraded_ratio_without_runs(self):
        assert ReportMetrics().degraded_ratio("sales_trend") == 0.0

    def test_record_timing(self):
        """Records timing statistics."""
        collector = ReportMetrics()
        collector.record_timing("inventory_valuation", 100.0)
        collector.record_timing("inventory_valuation", 200.0)
        collector.record_timing("inventory_valuation", 150.0)

        timings = collector.get_stats()["timing"]["inventory_valuation"]
        assert timings["count"] == 3
        assert timings["avg_ms"] == 150.0
        assert timings["min_ms"] == 100.0
        assert timings["max_ms"] == 200.0
        assert timings["p95_ms"] is None

    def test_timing_samples_bounded(self):
        collector = ReportMetrics(max_samples=100)
        for i in range(150):
            collector.record_timing("daily_sales", float(i))

        timings = collector.get_stats()["timing"]["daily_sales"]
        assert timings["count"] == 100
        assert timings["min_ms"] == 50.0

    def test_reset_stats(self):
        """Reset clears all statistics."""
        collector = ReportMetrics()
        collector.record_run("daily_sales")
        collector.record_degraded("daily_sales", "ReportComputationError")
        collector.record_timing("daily_sales", 100.0)

        collector.reset()

        assert collector.get_stats() == {"runs": {}, "degraded": {}, "degradedRatio": {}, "timing": {}}


class TestStructuredFormatter:
    """Tests for JSON log output."""

    def test_json_fields(self):
        formatter = StructuredFormatter()
        output = json.loads(formatter.format(_record(error_type="SnapshotFetchError")))

        assert output["level"] == "ERROR"
        assert output["logger"] == "core.reports"
        assert output["message"] == "Report degraded"
        assert output["error_type"] == "SnapshotFetchError"
        assert "run_id" not in output

    def test_includes_run_fields(self):
        formatter = StructuredFormatter()
        with report_run("customer_history", run_id="abc12345", customer_id="cust-x"):
            output = json.loads(formatter.format(_record()))

        assert output["run_id"] == "abc12345"
        assert output["report_type"] == "customer_history"
        assert output["customer_id"] == "cust-x"

    def test_non_serializable_extra(self):
        """Extras that are not JSON types are stringified."""
        formatter = StructuredFormatter()
        output = json.loads(formatter.format(_record(reasons={"no_items"})))
        assert output["reasons"] == "{'no_items'}"


class TestHumanReadableFormatter:
    """Tests for console log output."""

    def test_format(self):
        formatter = HumanReadableFormatter()
        with report_run("low_stock", run_id="run42", threshold=5):
            line = formatter.format(_record(error_type="ReportComputationError"))

        assert "ERROR" in line
        assert "core.reports [run42 low_stock] - Report degraded" in line
        assert "'error_type': 'ReportComputationError'" in line

    def test_without_run(self):
        line = HumanReadableFormatter().format(_record())
        assert line.endswith("core.reports - Report degraded")


class TestEngineLogging:
    """Log lines emitted by the engine carry the report run fields."""

    @pytest.mark.asyncio
    async def test_inner_reports_tagged_with_dashboard(self, repository, report_config, now, caplog):
        engine = ReportEngine(repository, report_config=report_config, clock=lambda: now)
        seen = []

        class _Capture(logging.Handler):
            def emit(self, record):
                seen.append((record.getMessage(), get_run_id(), get_run_fields()))

        handler = _Capture(level=logging.DEBUG)
        reports_logger = logging.getLogger("core.reports")
        reports_logger.addHandler(handler)
        try:
            with caplog.at_level(logging.DEBUG, logger="core.reports"):
                await engine.dashboard()
        finally:
            reports_logger.removeHandler(handler)
            metrics.reset()

        started = [(run_id, fields) for message, run_id, fields in seen if message == "Report started"]
        assert len({run_id for run_id, _ in started}) == 1
        inner = [fields for _, fields in started if fields.get("parent_report") == "dashboard"]
        assert {f["report_type"] for f in inner} == {
            "daily_sales", "low_stock", "inventory_valuation", "payment_analytics", "sales_trend",
        }
