"""Exception types shared across the booking assistant."""


class BookbotError(Exception):
    """Base class for errors raised by the booking assistant."""


class DataIntegrityError(BookbotError):
    """A record the current event depends on could not be found.

    The event is dropped with a warning; there is no customer-visible reply.
    """


class ConfigurationError(BookbotError):
    """Required startup configuration is missing or invalid."""
