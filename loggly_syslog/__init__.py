# loggly_syslog/__init__.py
"""
Loggly Syslog - forward log entries to Loggly over a persistent TLS stream.

Entries are encoded as RFC 5424 syslog lines and written to the Loggly
endpoint. While the connection is down they are buffered in memory and the
transport reconnects with exponential backoff.
"""

__version__ = '1.0.0'

from .config import load_config, TransportConfig
from .encoder import encode_message, default_log_format, SEVERITIES
from .errors import LogglyError, ConfigurationError, BufferingDisabledError
from .connection import ConnectionState
from .transport import LogTransport, LogglyTransport
from .handler import LogglyHandler, setup_logging, SYSLOG_LEVELS

__all__ = [
    'load_config',
    'TransportConfig',
    'encode_message',
    'default_log_format',
    'SEVERITIES',
    'LogglyError',
    'ConfigurationError',
    'BufferingDisabledError',
    'ConnectionState',
    'LogTransport',
    'LogglyTransport',
    'LogglyHandler',
    'setup_logging',
    'SYSLOG_LEVELS',
]
