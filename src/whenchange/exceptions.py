"""Custom exceptions for the whenchange package."""


class WhenchangeError(Exception):
    """Base exception for all whenchange errors."""
    pass


class WatchSetupError(WhenchangeError):
    """A path could not be subscribed with the event source."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class EventSourceError(WhenchangeError):
    """Error reported by the event source while running."""
    pass


class EngineNotStartedError(WhenchangeError):
    """The watch engine was run before being started."""
    pass
