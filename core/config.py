"""
Centralized configuration for the retail reporting engine.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from core.config import config

    tz_name = config.reports.timezone
    db_path = config.database.path
"""

import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ReportConfig:
    """Report computation settings."""

    timezone: str = field(default_factory=lambda: os.getenv("REPORT_TIMEZONE", "UTC"))

    # Cost price fallback when a product has none recorded
    default_cost_ratio: float = 0.6

    low_stock_threshold: int = 10
    sales_window_days: int = 90  # trailing window for avg monthly sales

    top_products_limit: int = 5
    trend_top_products: int = 3
    recent_activity_limit: int = 5
    history_orders_limit: int = 10
    customer_history_limit: int = 50
    default_trend_weeks: int = 8
    max_range_days: int = 365


@dataclass(frozen=True)
class QualityConfig:
    """Thresholds for data-quality warning severity (invalid / total records)."""

    medium_ratio: float = 0.05
    high_ratio: float = 0.20

    def severity(self, invalid: int, total: int) -> str:
        """Map an invalid-record ratio to low/medium/high."""
        ratio = invalid / total if total > 0 else 0
        if ratio > self.high_ratio:
            return "high"
        if ratio > self.medium_ratio:
            return "medium"
        return "low"


@dataclass(frozen=True)
class DatabaseConfig:
    """DuckDB snapshot store configuration."""

    path: str = field(
        default_factory=lambda: os.getenv("REPORTS_DB_PATH", "data/retail.duckdb")
    )
    read_only: bool = field(default_factory=lambda: _env_bool("REPORTS_DB_READ_ONLY"))
    query_timeout: float = field(
        default_factory=lambda: float(os.getenv("REPORTS_DB_QUERY_TIMEOUT", "30"))
    )


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    json_format: bool = field(default_factory=lambda: _env_bool("LOG_JSON"))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    reports: ReportConfig = field(default_factory=ReportConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global config instance
config = AppConfig()


# ─── Convenience Exports ──────────────────────────────────────────────────────
VERSION = config.version
REPORT_TIMEZONE = config.reports.timezone
DEFAULT_COST_RATIO = config.reports.default_cost_ratio


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = None) -> None:
    """
    Validate configuration values.

    Call this on startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If any value is invalid
    """
    app_config = app_config or config
    errors = []

    try:
        ZoneInfo(app_config.reports.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"REPORT_TIMEZONE '{app_config.reports.timezone}' is not a known timezone")

    if not 0 < app_config.reports.default_cost_ratio <= 1:
        errors.append("default_cost_ratio must be in (0, 1]")

    if app_config.reports.sales_window_days < 1:
        errors.append("sales_window_days must be positive")

    if app_config.quality.medium_ratio > app_config.quality.high_ratio:
        errors.append("quality.medium_ratio cannot exceed quality.high_ratio")

    if not app_config.database.path:
        errors.append("REPORTS_DB_PATH is empty")

    if app_config.database.query_timeout <= 0:
        errors.append("REPORTS_DB_QUERY_TIMEOUT must be positive")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
