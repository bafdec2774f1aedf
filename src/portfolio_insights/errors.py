"""Error taxonomy for the analytics engine.

Aggregators raise these instead of returning plausible-looking numbers
(0% allocations, NaN returns). Callers render a degraded state.
"""


class PortfolioInsightsError(Exception):
    """Base exception for analytics errors."""

    pass


class EmptyPortfolioError(PortfolioInsightsError, ValueError):
    """Raised when an aggregation needs at least one holding (or a non-zero total)."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot compute {operation}: portfolio has no holdings")


class NotFoundError(PortfolioInsightsError, LookupError):
    """Raised when the repository has no stored record yet."""

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"No {what} found")


class UnsupportedWindowError(PortfolioInsightsError, KeyError):
    """Raised when a performance window has neither a mapping nor a fallback."""

    def __init__(self, window: str, reason: str = ""):
        self.window = window
        self.reason = reason
        message = f"Unsupported performance window: {window}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class MissingFieldError(PortfolioInsightsError, ValueError):
    """Raised when a required field is absent or unparseable at the repository boundary."""

    def __init__(self, field: str, record: str | None = None):
        self.field = field
        self.record = record
        message = f"Missing or invalid required field: {field}"
        if record:
            message += f" (record {record})"
        super().__init__(message)
