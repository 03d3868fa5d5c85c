# loggly_syslog/handler.py
"""Integration with the standard ``logging`` module."""

import logging
import sys
import traceback
from logging import Handler, LogRecord
from typing import Any, Dict, Optional

from .config import load_config
from .encoder import SEVERITIES
from .transport import LogglyTransport

# Level vocabulary a host framework can register (name -> syslog severity)
SYSLOG_LEVELS = dict(SEVERITIES)

# Python level number -> syslog level name, checked from most to least severe
PYTHON_LEVELS = (
    (logging.CRITICAL, 'crit'),
    (logging.ERROR, 'error'),
    (logging.WARNING, 'warning'),
    (logging.INFO, 'info'),
    (logging.DEBUG, 'debug'),
)

# Syslog level name -> Python level number, for the handler threshold
LEVEL_THRESHOLDS = {
    'emerg': logging.CRITICAL,
    'alert': logging.CRITICAL,
    'crit': logging.CRITICAL,
    'error': logging.ERROR,
    'warning': logging.WARNING,
    'notice': logging.INFO,
    'info': logging.INFO,
    'debug': logging.DEBUG,
}

# Attributes every LogRecord has; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime', 'taskName'}

# Loggers of this package; forwarding them would feed errors back into the stream
_OWN_LOGGER = __name__.split('.')[0]


def syslog_level(levelno: int) -> str:
    """Map a Python level number onto the syslog level vocabulary."""
    for threshold, name in PYTHON_LEVELS:
        if levelno >= threshold:
            return name
    return 'debug'


class LogglyHandler(Handler):
    """Logging handler that forwards records to a Loggly transport."""

    def __init__(self, transport: LogglyTransport, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.transport = transport
        self.inline_meta = transport.config.inline_meta

    def build_meta(self, record: LogRecord) -> Dict[str, Any]:
        meta: Dict[str, Any] = {"logger": record.name}

        if self.inline_meta:
            for key, value in vars(record).items():
                if key not in _RECORD_ATTRS and not key.startswith('_'):
                    meta[key] = value

        if record.exc_info:
            _type, _value, _tb = record.exc_info
            if _type is not None:
                meta["exception_type"] = _type.__name__
                meta["stacktrace"] = "".join(traceback.format_exception(_type, _value, _tb))
        return meta

    def emit(self, record: LogRecord) -> None:
        if record.name == _OWN_LOGGER or record.name.startswith(_OWN_LOGGER + '.'):
            return
        try:
            self.transport.log(syslog_level(record.levelno), record.getMessage(), self.build_meta(record))
        except Exception:
            # Never break application logging.
            self.handleError(record)

    def close(self) -> None:
        try:
            self.transport.close()
        finally:
            super().close()


def install_exception_hook(logger: logging.Logger) -> None:
    """Log uncaught exceptions at error level before the previous hook runs."""
    previous = sys.excepthook

    def hook(exc_type, exc_value, exc_tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            logger.error("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
        previous(exc_type, exc_value, exc_tb)

    sys.excepthook = hook


def setup_logging(
    logger: Optional[logging.Logger] = None,
    *,
    transport: Optional[LogglyTransport] = None,
    config_path: Optional[str] = None,
    **options
) -> LogglyHandler:
    """Attach a Loggly handler to a logger (the root logger by default).

    The transport is built from ``options`` and, when given, a YAML config
    file. Calling this twice for the same logger returns the existing handler.
    """
    target_logger = logger or logging.getLogger()

    # Avoid attaching duplicate handlers to the same logger.
    for existing in target_logger.handlers:
        if isinstance(existing, LogglyHandler):
            return existing

    if transport is None:
        transport = LogglyTransport(load_config(config_path, **options))

    handler = LogglyHandler(transport, LEVEL_THRESHOLDS.get(transport.level, logging.INFO))
    target_logger.addHandler(handler)

    if transport.config.handle_exceptions:
        install_exception_hook(target_logger)

    return handler
