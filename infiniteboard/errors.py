"""Error types raised by the timeline controllers and data services."""


class TimelineError(Exception):
    """Base class for rejected timeline actions."""


class ValidationError(TimelineError):
    """Raised when an action references unknown or invalid data."""


class PersistenceError(TimelineError):
    """Raised when the data-access service fails to complete a call."""


class NotFoundError(PersistenceError):
    """Raised by a data-access service when an identifier does not exist."""
