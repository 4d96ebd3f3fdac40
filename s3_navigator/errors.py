"""Exception hierarchy for the S3 navigator."""


class NavigatorError(RuntimeError):
    """Base class for errors surfaced to the view layer."""


class NetworkError(NavigatorError):
    """Raised when a request fails: transport error, non-2xx status or timeout."""


class ParseError(NavigatorError):
    """Raised when a listing response does not match the expected schema."""


class NavigationError(NavigatorError):
    """Raised for navigation requests that cannot be honoured."""
