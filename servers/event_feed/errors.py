"""Exception types raised across the event feed."""


class FeedError(Exception):
    """Base class for event feed errors."""


class FetchError(FeedError):
    """Raised when a source fails to return events."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class RateLimitExceeded(FetchError):
    """Raised when the provider quota for the current identity is exhausted."""

    def __init__(self, source: str = "ticketmaster", message: str = "API rate limit exceeded. Try again tomorrow."):
        super().__init__(source, message)


class InvalidArgument(FeedError, ValueError):
    """Raised on contract violations such as a negative radius."""


class NotAuthenticated(FeedError):
    """Raised when an operation needs a signed-in user."""

    def __init__(self, message: str = "You must be logged in to perform this action"):
        super().__init__(message)


class EventNotFound(FeedError):
    """Raised when an event cannot be resolved to an upstream record."""

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id
