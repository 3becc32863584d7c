"""Exception types raised by the trends engine."""


class TrendsError(Exception):
    """Base class for all trends engine errors."""
    pass


class OptionsValidationError(TrendsError):
    """Raised when engine options are out of range or malformed."""
    pass


class TrendStoreError(TrendsError):
    """Raised when a refresh could not be committed to the trending store."""
    pass


class ReviewRequestError(TrendsError):
    """Raised when review-requested timestamps could not be written."""
    pass


class RefreshInProgressError(TrendsError):
    """Raised when another process is already refreshing the store."""
    pass


class UsageTrackerError(TrendsError):
    """Raised when recent usage could not be read from the tracker backend."""
    pass


class RepositoryError(TrendsError):
    """Raised when statuses or viewer exclusions could not be read."""
    pass
