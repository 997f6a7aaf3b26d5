"""
Logging, report-run context and in-process report metrics.

Every report executes inside a ``report_run`` scope. Log lines emitted within
it carry the run id and the report fields, whichever logger emits them, so a
degraded dashboard can be traced back through the inner reports it ran.

Usage:
    from core.observability import setup_logging, get_logger, report_run

    setup_logging("DEBUG")

    logger = get_logger(__name__)
    with report_run("low_stock", threshold=5):
        logger.info("Products fetched", extra={"products": 42})
"""
import logging
import json
import time
import uuid
from contextvars import ContextVar
from typing import Optional, Any, Dict
from datetime import datetime, timezone

_run_id: ContextVar[Optional[str]] = ContextVar("report_run_id", default=None)
_run_fields: ContextVar[Optional[Dict[str, Any]]] = ContextVar("report_run_fields", default=None)

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "asctime", "taskName"
}

SLOW_REPORT_MS = 1000


def get_run_id() -> Optional[str]:
    """Id of the report run in progress, None outside any run."""
    return _run_id.get()


def get_run_fields() -> Dict[str, Any]:
    """Fields attached to the report run in progress."""
    return dict(_run_fields.get() or {})


class report_run:
    """
    Scope one report run.

    A run opened inside another keeps the outer run id and records the outer
    report as ``parent_report``.
    """

    def __init__(self, report_type: str, run_id: Optional[str] = None, **fields):
        self.report_type = report_type
        self.run_id = run_id
        self.fields = fields
        self._tokens = None

    def __enter__(self) -> str:
        outer = _run_fields.get() or {}
        run_id = self.run_id or _run_id.get() or uuid.uuid4().hex[:8]

        fields = {"report_type": self.report_type}
        if outer.get("report_type"):
            fields["parent_report"] = outer["report_type"]
        fields.update(self.fields)

        self._tokens = (_run_id.set(run_id), _run_fields.set(fields))
        return run_id

    def __exit__(self, *args):
        id_token, fields_token = self._tokens
        _run_fields.reset(fields_token)
        _run_id.reset(id_token)


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v for k, v in record.__dict__.items()
        if k not in _STANDARD_ATTRS and not k.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """JSON lines: timestamp, level, logger, message, run fields, extras."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = get_run_id()
        if run_id:
            log_entry["run_id"] = run_id
            log_entry.update(get_run_fields())

        log_entry.update(_record_extras(record))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console formatter.

    Format: TIMESTAMP - LEVEL - LOGGER [RUN_ID REPORT] - MESSAGE | extras
    """

    def format(self, record: logging.LogRecord) -> str:
        run_id = get_run_id()
        fields = get_run_fields()
        tag = ""
        if run_id:
            tag = f" [{run_id} {fields.get('report_type', '-')}]"

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} - {record.levelname:8} - {record.name}{tag} - {record.getMessage()}"

        extras = {k: v for k, v in _record_extras(record).items() if k not in fields}
        if extras:
            line += f" | {extras}"

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"

        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_libs: bool = False
) -> None:
    """
    Configure root logging for the CLI or an embedding application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output JSON logs; otherwise human-readable
        include_libs: If True, keep asyncio debug output
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    if not include_libs:
        logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Time the compute phase of a report.

    Logs at WARNING once ``slow_ms`` is exceeded, DEBUG otherwise.

    Usage:
        with Timer("inventory_valuation compute", logger) as t:
            report = build_valuation(snapshot)
        metrics.record_timing("inventory_valuation", t.elapsed_ms)
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None, slow_ms: float = SLOW_REPORT_MS):
        self.name = name
        self.logger = logger
        self.slow_ms = slow_ms
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if self.logger:
            level = logging.WARNING if self.elapsed_ms > self.slow_ms else logging.DEBUG
            self.logger.log(
                level,
                f"{self.name} completed",
                extra={"duration_ms": round(self.elapsed_ms, 2)}
            )


# ═══════════════════════════════════════════════════════════════════════════════
# REPORT METRICS
# ═══════════════════════════════════════════════════════════════════════════════

class ReportMetrics:
    """
    In-process report counters.

    Tracks runs per report type, degraded runs per report type broken down by
    error type, and compute timings (last ``max_samples`` per report).
    """

    def __init__(self, max_samples: int = 100):
        self.max_samples = max_samples
        self._runs: Dict[str, int] = {}
        self._degraded: Dict[str, Dict[str, int]] = {}
        self._timings: Dict[str, list] = {}

    def record_run(self, report_type: str) -> None:
        self._runs[report_type] = self._runs.get(report_type, 0) + 1

    def record_degraded(self, report_type: str, error_type: str) -> None:
        by_error = self._degraded.setdefault(report_type, {})
        by_error[error_type] = by_error.get(error_type, 0) + 1

    def record_timing(self, report_type: str, duration_ms: float) -> None:
        samples = self._timings.setdefault(report_type, [])
        samples.append(duration_ms)
        if len(samples) > self.max_samples:
            del samples[:-self.max_samples]

    def degraded_ratio(self, report_type: str) -> float:
        """Share of runs of ``report_type`` that degraded, 0 when never run."""
        runs = self._runs.get(report_type, 0)
        if not runs:
            return 0.0
        return round(sum(self._degraded.get(report_type, {}).values()) / runs, 4)

    def get_stats(self) -> Dict[str, Any]:
        """Current counters and per-report timing percentiles."""
        timing = {}
        for report_type, samples in self._timings.items():
            if not samples:
                continue
            ordered = sorted(samples)
            timing[report_type] = {
                "count": len(ordered),
                "avg_ms": round(sum(ordered) / len(ordered), 2),
                "min_ms": round(ordered[0], 2),
                "max_ms": round(ordered[-1], 2),
                "p50_ms": round(ordered[len(ordered) // 2], 2),
                "p95_ms": round(ordered[int(len(ordered) * 0.95)], 2) if len(ordered) >= 20 else None,
            }

        return {
            "runs": dict(self._runs),
            "degraded": {k: dict(v) for k, v in self._degraded.items()},
            "degradedRatio": {k: self.degraded_ratio(k) for k in self._runs},
            "timing": timing,
        }

    def reset(self) -> None:
        self._runs.clear()
        self._degraded.clear()
        self._timings.clear()


metrics = ReportMetrics()
