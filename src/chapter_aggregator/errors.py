"""Exception hierarchy for chapter aggregation."""


class AggregatorError(Exception):
    """Base class for all chapter-aggregator errors."""


class CancellationError(AggregatorError):
    """The run was cancelled by the user."""

    def __init__(self, message: str = "Download cancelled by user"):
        super().__init__(message)


class ChallengeError(AggregatorError):
    """The server answered with an anti-bot or rate-limit interstitial."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class TransportError(AggregatorError):
    """Network failure, timeout, or non-success HTTP status."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(AggregatorError):
    """No content region could be located in a fetched page."""


class EmptyWorkListError(AggregatorError):
    """A run was requested without any work items."""


class SettingsError(AggregatorError):
    """Unknown settings key or a value outside the allowed range."""
