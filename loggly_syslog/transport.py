# loggly_syslog/transport.py
"""Loggly transport: the public entry point for forwarding log entries."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .buffer import MessageBuffer
from .config import TransportConfig
from .connection import ConnectionManager, ConnectionState, Scheduler
from .encoder import encode_message

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], bool], Any]

EVENTS = ('connect', 'error')


class LogTransport(ABC):
    """What a host logging framework needs from a transport."""

    name: str = 'transport'
    level: str = 'info'

    @abstractmethod
    def log(self, level: str, message: Any, meta: Optional[Dict] = None,
            callback: Optional[Callback] = None) -> bool:
        """Accept one log entry."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Clean up resources."""
        pass


class LogglyTransport(LogTransport):
    """Forward log entries to Loggly over a persistent TLS syslog stream.

    The connection is opened as soon as the transport is built. Entries
    logged while disconnected are buffered in memory and written, in order,
    when the connection comes back. Delivery problems never reach the caller
    of :meth:`log`; they are reported to ``error`` listeners instead. Pass
    ``on_connect``/``on_error`` to hear about the first connection attempt,
    which starts before the constructor returns.

    Usage:
        transport = LogglyTransport(token='...', tags=['web'], on_error=print)
        transport.log('info', 'user signed in', {'user_id': 42})
    """

    name = 'Loggly'

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        *,
        connector=None,
        scheduler: Optional[Scheduler] = None,
        on_connect: Optional[Callable[[str], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
        **options
    ):
        if config is None:
            config = TransportConfig.from_options(**options)
        elif options:
            raise TypeError('Pass either a TransportConfig or keyword options, not both')

        self.config = config
        self.level = config.level
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}
        # Registered before the first attempt starts so its outcome is never missed
        if on_connect is not None:
            self.on('connect', on_connect)
        if on_error is not None:
            self.on('error', on_error)
        self.buffer = MessageBuffer()
        self.connection = ConnectionManager(
            config,
            self.buffer,
            connector=connector,
            scheduler=scheduler,
            on_connect=lambda message: self._emit('connect', message),
            on_error=lambda error: self._emit('error', error),
        )
        self.connection.start()

    # -- events ----------------------------------------------------------

    def on(self, event: str, listener: Callable) -> 'LogglyTransport':
        """Register a listener for ``connect`` (status string) or ``error`` (exception)."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event '{event}', expected one of {EVENTS}")
        self._listeners[event].append(listener)
        return self

    def off(self, event: str, listener: Callable) -> 'LogglyTransport':
        """Remove a previously registered listener."""
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)
        return self

    def _emit(self, event: str, payload: Any) -> None:
        if event == 'error' and not self._listeners[event]:
            logger.error(f"Unhandled Loggly transport error: {payload}")

        for listener in list(self._listeners[event]):
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Loggly '{event}' listener failed")

    # -- logging ---------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def connected(self) -> bool:
        return self.connection.connected

    @property
    def buffering_enabled(self) -> bool:
        return self.buffer.enabled

    def log(self, level: str, message: Any, meta: Optional[Dict] = None,
            callback: Optional[Callback] = None) -> bool:
        """Send or buffer one entry. Always acknowledges success."""
        # log(level, msg, callback) is accepted too
        if callable(meta) and callback is None:
            callback, meta = meta, None
        if meta is None:
            meta = {}

        if not self.buffer.enabled and not self.connected:
            # Buffering was disabled during an outage: the entry is lost
            self.buffer.record_drop()
        else:
            self.send_message(level, message, meta)

        if callback is not None:
            callback(None, True)
        return True

    def send_message(self, level: str, message: Any, meta: Optional[Dict] = None) -> bool:
        """Encode an entry and write it to the stream, or buffer it."""
        data = encode_message(
            level,
            message,
            meta,
            hostname=self.config.hostname,
            program=self.config.program,
            pid=self.config.pid,
            structured_data=self.config.structured_data,
            log_format=self.config.log_format,
        )
        return self.connection.send(data)

    def close(self) -> None:
        """Stop reconnecting and close the connection."""
        self.connection.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
