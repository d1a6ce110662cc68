"""Custom exceptions for the dirty tracker package."""


class TrackerError(Exception):
    """Base exception for all tracker errors."""
    pass


class InvalidRootError(TrackerError):
    """Watched root does not exist or is not a directory."""
    pass


class SetupFailedError(TrackerError):
    """The watch could not be established for a reason other than platform limits."""
    pass


class WatchCapabilityError(TrackerError):
    """
    The platform cannot support a recursive watch on the root.

    Raised by the watch session and absorbed by the tracker, which then
    reports an unknown state instead of failing.
    """
    pass
