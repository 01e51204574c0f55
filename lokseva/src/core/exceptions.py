"""Exception classes raised by the LokSeva core engines."""


class LokSevaError(Exception):
    """Base exception for all application errors."""


class ConversationNotFoundError(LokSevaError):
    """Raised when a conversation id is malformed or does not exist."""


class InvalidImageError(LokSevaError):
    """Raised when an audit image payload cannot be decoded."""
