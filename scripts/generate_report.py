#!/usr/bin/env python3
"""
Generate a report from a DuckDB snapshot and print it.

Usage:
    python scripts/generate_report.py daily_sales --date 2026-03-01
    python scripts/generate_report.py payment_analytics --start 2026-03-01 --end 2026-03-31
    python scripts/generate_report.py low_stock --threshold 5 --format csv
    python scripts/generate_report.py sales_trend --period monthly --weeks 6
    python scripts/generate_report.py customer_history --customer-id c-42
"""
import asyncio
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import config, validate_config
from core.exceptions import ValidationError
from core.export import report_to_csv
from core.observability import get_logger, metrics, setup_logging
from core.reports import ReportEngine
from core.repositories import DuckDBSnapshotRepository
from core.validators import (
    VALID_PERIODS,
    VALID_REPORT_TYPES,
    validate_customer_id,
    validate_date_range,
    validate_date_string,
    validate_limit,
    validate_period,
    validate_report_type,
    validate_threshold,
    validate_weeks,
)

logger = get_logger(__name__)


def build_params(args: argparse.Namespace) -> dict:
    """Validate CLI arguments into report parameters."""
    report_type = validate_report_type(args.report)

    if report_type == "daily_sales":
        return {"date": validate_date_string(args.date) if args.date else None}

    if report_type in ("payment_analytics", "channel_performance"):
        if args.start or args.end:
            start, end = validate_date_range(args.start or args.end, args.end or args.start)
            return {"start_date": start, "end_date": end}
        return {}

    if report_type == "low_stock":
        return {"threshold": validate_threshold(args.threshold) if args.threshold is not None else None}

    if report_type == "customer_history":
        return {
            "customer_id": validate_customer_id(args.customer_id),
            "limit": validate_limit(args.limit) if args.limit is not None else None,
        }

    if report_type == "sales_trend":
        return {
            "period": validate_period(args.period),
            "weeks": validate_weeks(args.weeks) if args.weeks is not None else None,
        }

    return {}


async def main(args: argparse.Namespace) -> int:
    """Run one report and print it."""
    try:
        report_type = validate_report_type(args.report)
        params = build_params(args)
    except ValidationError as e:
        logger.error(f"Invalid arguments: {e}")
        return 2

    repository = DuckDBSnapshotRepository(args.db, read_only=True)
    engine = ReportEngine(repository)
    try:
        result = await engine.generate(report_type, **params)
    finally:
        await repository.close()
    logger.debug("Report metrics", extra={"metrics": metrics.get_stats()})

    if args.format == "csv":
        print(report_to_csv(report_type, result.report), end="")
    else:
        print(result.report.model_dump_json(indent=2))

    return 0 if result.is_ok else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a retail report from a DuckDB snapshot")
    parser.add_argument("report", choices=sorted(VALID_REPORT_TYPES), help="Report type")
    parser.add_argument("--db", default=config.database.path, help="DuckDB file (default: %(default)s)")
    parser.add_argument("--date", help="Day for daily_sales (YYYY-MM-DD)")
    parser.add_argument("--start", help="Range start (YYYY-MM-DD)")
    parser.add_argument("--end", help="Range end (YYYY-MM-DD)")
    parser.add_argument("--threshold", type=int, help="Stock threshold for low_stock")
    parser.add_argument("--customer-id", help="Limit customer_history to one customer")
    parser.add_argument("--limit", type=int, help="Max customers for customer_history")
    parser.add_argument("--period", choices=sorted(VALID_PERIODS), default="weekly", help="Trend period")
    parser.add_argument("--weeks", type=int, help="Trend length (months for the monthly period)")
    parser.add_argument("--format", choices=["json", "csv"], default="json", help="Output format")
    args = parser.parse_args()

    setup_logging(config.logging.level, config.logging.json_format)
    validate_config()

    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
