"""
Core library for the retail reporting engine.

This package turns order, product and customer snapshots into reports:
- buckets: Date range normalization and time buckets
- quality: Order eligibility and data-quality warnings
- aggregation: Per-dimension rollups
- segmentation: Customer RFM scoring
- valuation: Inventory valuation and ABC tiers
- reports: ReportEngine facade
- config: Centralized configuration
"""

# Import in dependency order
from core.exceptions import (
    ReportError,
    SnapshotFetchError,
    ReportComputationError,
    ValidationError,
)

from core.validators import (
    validate_date_string,
    validate_date_range,
    validate_threshold,
    validate_limit,
    validate_weeks,
    validate_period,
    validate_customer_id,
    validate_report_type,
)

from core.config import config

from core.reports import ReportEngine, ReportResult

__all__ = [
    # Exceptions
    "ReportError",
    "SnapshotFetchError",
    "ReportComputationError",
    "ValidationError",
    # Validators
    "validate_date_string",
    "validate_date_range",
    "validate_threshold",
    "validate_limit",
    "validate_weeks",
    "validate_period",
    "validate_customer_id",
    "validate_report_type",
    # Config
    "config",
    # Engine
    "ReportEngine",
    "ReportResult",
]
