"""
Exception hierarchy for the reporting engine.

Exception Hierarchy:
    ReportError (base)
    ├── SnapshotFetchError      - Snapshot retrieval from storage failed
    └── ReportComputationError  - Unexpected failure while building a report

    ValidationError             - Input parameter validation failed
"""


class ReportError(Exception):
    """Base exception for all report-engine errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class SnapshotFetchError(ReportError):
    """
    Reading the snapshot from the persistence layer failed.

    Terminal for the report call that triggered it; the facade converts it
    into a degraded report.
    """

    def __init__(self, message: str, details: str = None, source: str = None):
        super().__init__(message, details)
        self.source = source


class ReportComputationError(ReportError):
    """
    Report computation failed on an otherwise successful snapshot.

    Wraps the original exception so the facade can surface its message.
    """

    def __init__(self, message: str, details: str = None, report_type: str = None):
        super().__init__(message, details)
        self.report_type = report_type


class ValidationError(Exception):
    """
    Input validation failed.

    Raised by the calling layer before a report is requested.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
