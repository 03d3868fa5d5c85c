# loggly_syslog/errors.py
"""Exception types raised or emitted by the transport."""


class LogglyError(Exception):
    """Base class for all loggly_syslog errors."""


class ConfigurationError(LogglyError, ValueError):
    """Raised when the transport is built with missing or invalid options."""


class BufferingDisabledError(LogglyError):
    """Emitted on the error channel once buffering has been switched off."""
