class LeaderboardError(Exception):
    """Base class for failures that must never reach the page being rendered."""


class StoreUnavailable(LeaderboardError):
    """The order store could not be queried."""


class CacheUnavailable(LeaderboardError):
    """The cache store failed; callers fall back to a direct store fetch."""


class InvalidParameter(LeaderboardError, ValueError):
    """A request attribute is out of range or malformed."""
