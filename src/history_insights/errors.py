"""
Exception taxonomy for history insights.

Only NoDataError and StoreError are meant to reach callers. Classifier
errors are raised by the classifier clients and recovered inside the
topic/behavior analysis.
"""


class InsightsError(Exception):
    """Base class for all history insights errors."""
    pass


class ConfigError(InsightsError, ValueError):
    """Raised when configuration values are invalid."""
    pass


class NoDataError(InsightsError):
    """Raised when a user has no stored browsing history."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No browsing history found for user {user_id}")


class StoreError(InsightsError):
    """Raised when the history store cannot be read or written."""
    pass


class ClassifierError(InsightsError):
    """Base class for topic classifier failures."""
    pass


class ClassifierUnavailableError(ClassifierError):
    """Network, quota or credential failure of the classifier service."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class UnparseableClassifierResponseError(ClassifierError):
    """Classifier answered, but no valid JSON payload could be extracted."""
    pass
