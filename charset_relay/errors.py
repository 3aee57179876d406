"""Domain-specific errors for charset-relay."""


class CharsetRelayError(Exception):
    """Base error for charset-relay."""


class ConfigurationError(CharsetRelayError):
    """Raised when a charset list is empty, malformed or names an unknown charset."""
