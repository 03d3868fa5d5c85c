# loggly_syslog/connection.py
"""Persistent TLS connection to the Loggly syslog endpoint."""

import logging
import select
import socket
import ssl
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Optional, Tuple

from .backoff import BackoffPolicy
from .buffer import MessageBuffer
from .config import TransportConfig
from .errors import BufferingDisabledError

logger = logging.getLogger(__name__)

READ_SIZE = 4096


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class Scheduler(ABC):
    """Source of timers and background workers for the connection manager."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        """Run ``callback`` after ``delay`` seconds. Returns a handle with ``cancel()``."""
        pass

    @abstractmethod
    def spawn(self, target: Callable[[], None], name: str) -> None:
        """Run ``target`` in the background."""
        pass


class ThreadScheduler(Scheduler):
    """Scheduler backed by daemon threads and ``threading.Timer``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def spawn(self, target: Callable[[], None], name: str) -> None:
        threading.Thread(target=target, name=name, daemon=True).start()


class TLSStream:
    """Non-blocking wrapper over a connected socket, normally an ``ssl.SSLSocket``.

    ``write`` and ``read`` never wait, so they can run under the manager's
    lock; OpenSSL objects must not be driven from two threads at once.
    Waiting happens in ``wait``, outside the lock.
    """

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.sock.setblocking(False)

    def write(self, data: bytes) -> int:
        """Write what the socket accepts right now. Returns the number of bytes taken."""
        try:
            return self.sock.send(data)
        except (ssl.SSLWantWriteError, ssl.SSLWantReadError, BlockingIOError):
            return 0

    def wait(self, timeout: float, want_write: bool = False) -> Tuple[bool, bool]:
        """Wait until the socket is readable, or writable when ``want_write`` is set."""
        if isinstance(self.sock, ssl.SSLSocket) and self.sock.pending():
            return True, want_write
        try:
            readable, writable, _ = select.select(
                [self.sock], [self.sock] if want_write else [], [], timeout
            )
        except (OSError, ValueError):
            # Closed underneath us, let read() report it
            return True, False
        return bool(readable), bool(writable)

    def read(self) -> Optional[bytes]:
        """Return received bytes, ``b''`` at end of stream, or None if nothing is ready."""
        try:
            return self.sock.recv(READ_SIZE)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError, BlockingIOError):
            return None

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError:
            pass


def build_ssl_context(verify_certs: bool = False, ca_certs: Optional[str] = None) -> ssl.SSLContext:
    """Create the client TLS context.

    Certificate verification is off unless ``verify_certs`` is set, so
    self-signed or unverified endpoints are accepted.
    """
    context = ssl.create_default_context(cafile=ca_certs)
    if not verify_certs:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class TLSConnector:
    """Open a TLS stream to ``host:port``, completing the handshake."""

    def __init__(self, context: ssl.SSLContext, timeout: float = 10.0):
        self.context = context
        self.timeout = timeout

    def __call__(self, host: str, port: int) -> TLSStream:
        raw = socket.create_connection((host, port), timeout=self.timeout)
        try:
            sock = self.context.wrap_socket(raw, server_hostname=host)
        except Exception:
            raw.close()
            raise
        return TLSStream(sock)


class ConnectionManager:
    """Owns the single outbound connection and the reconnection loop.

    All state (stream handle, counters, buffer, outgoing queue, enabled flag)
    is mutated under one re-entrant lock. Listeners are called with that
    lock held. No code path waits on the network while holding the lock:
    writes that the socket cannot take yet stay queued for the I/O thread.
    """

    poll_interval = 1.0

    def __init__(
        self,
        config: TransportConfig,
        buffer: Optional[MessageBuffer] = None,
        *,
        connector: Optional[Callable[[str, int], Any]] = None,
        scheduler: Optional[Scheduler] = None,
        on_connect: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        self.config = config
        self.buffer = buffer if buffer is not None else MessageBuffer()
        self.backoff = BackoffPolicy(
            base_delay=config.connection_delay,
            max_delay=config.max_delay_between_reconnection,
            attempts_before_decay=config.attempts_before_decay,
        )
        self.connector = connector or TLSConnector(
            build_ssl_context(config.verify_certs, config.ca_certs),
            timeout=config.connect_timeout,
        )
        self.scheduler = scheduler or ThreadScheduler()
        self.clock = time.monotonic
        self._on_connect = on_connect
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._stream = None
        self._timer = None
        self._closed = False

        # Encoded chunks accepted for the live stream but not fully written
        self._outgoing: Deque[bytes] = deque()
        self._sent = 0
        self._last_progress = 0.0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def address(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    @property
    def backlog(self) -> int:
        """Number of chunks queued for the live stream and not yet written."""
        return len(self._outgoing)

    def start(self) -> None:
        """Begin the first connection attempt. Failures go to the error listener."""
        try:
            with self._lock:
                self._connect()
        except Exception as e:
            logger.error(f"Failed to start connection to {self.address}: {e}")
            self._emit_error(e)

    def send(self, message: str) -> bool:
        """Write a message if connected, otherwise buffer it. Never waits on the network.

        Returns False only when the message was dropped.
        """
        with self._lock:
            stream = self._stream
            if self._state is ConnectionState.CONNECTED and stream is not None:
                self._enqueue(message)
                try:
                    self._flush_outgoing(stream)
                except OSError as e:
                    # The unwritten message goes back to the buffer with the rest
                    self._on_stream_error(stream, e)
                return True
            return self.buffer.append(message)

    def close(self) -> None:
        """Stop reconnecting and close the current stream."""
        with self._lock:
            self._closed = True
            self._cancel_timer()
            self._drop_stream()
            self._state = ConnectionState.DISCONNECTED
        logger.debug(f"Connection to {self.address} closed")

    # -- connection lifecycle --------------------------------------------

    def _connect(self) -> None:
        if self._closed:
            return
        self._state = ConnectionState.CONNECTING
        logger.debug(f"Connecting to {self.address}")
        self.scheduler.spawn(self._open_stream, name='loggly-connect')

    def _open_stream(self) -> None:
        try:
            stream = self.connector(self.config.host, self.config.port)
        except Exception as e:
            with self._lock:
                self._on_stream_error(None, e)
            return
        if self._on_connected(stream):
            self.scheduler.spawn(lambda: self._io_loop(stream), name='loggly-io')

    def _on_connected(self, stream) -> bool:
        with self._lock:
            if self._closed:
                stream.close()
                return False

            self._stream = stream
            self._state = ConnectionState.CONNECTED
            self.backoff.reset()
            self.buffer.enable()
            logger.info(f"TLS connection established: {self.address}")

            # Queue the backlog before anyone else can write, listeners included
            count = len(self.buffer)
            pending = self.buffer.drain()
            if pending:
                self._enqueue(pending)
                try:
                    self._flush_outgoing(stream)
                except OSError as e:
                    self._on_stream_error(stream, e)
                    return False
                logger.debug(f"Flushing {count} buffered messages")

            self._emit_connect(f"Connected to Loggly at {self.address}")
            return True

    def _io_loop(self, stream) -> None:
        """Write queued data and watch for end-of-stream or errors until the stream is replaced."""
        while True:
            with self._lock:
                if stream is not self._stream:
                    return
                want_write = bool(self._outgoing)

            readable, writable = stream.wait(self.poll_interval, want_write)

            with self._lock:
                if stream is not self._stream:
                    return
                try:
                    if writable:
                        self._flush_outgoing(stream)
                    data = stream.read() if readable else None
                except OSError as e:
                    self._on_stream_error(stream, e)
                    return
                if data == b'':
                    self._on_stream_end(stream)
                    return
                if self._write_stalled():
                    self._on_stream_error(stream, TimeoutError(
                        f"No data accepted by {self.address} for {self.config.write_timeout}s"
                    ))
                    return

    def _on_stream_error(self, stream, error: BaseException) -> None:
        # Events from a stream that has already been replaced are stale
        if stream is not None and stream is not self._stream:
            return

        self._drop_stream()
        self._state = ConnectionState.DISCONNECTED
        if self._closed:
            return

        self._emit_error(error)
        logger.warning(
            f"Connection to {self.address} failed, retrying in "
            f"{self.backoff.delay_seconds:.1f}s: {error}"
        )
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.backoff.delay_seconds, self._retry)

    def _on_stream_end(self, stream) -> None:
        if stream is not self._stream:
            return
        self._drop_stream()
        self._state = ConnectionState.DISCONNECTED
        logger.warning(f"Connection to {self.address} ended, reconnecting")
        self._connect()

    def _retry(self) -> None:
        with self._lock:
            self._timer = None
            if self._closed:
                return

            self.backoff.record_failure()
            self._connect()

            # Stop buffering after a fixed number of retries so memory stays bounded
            if self.backoff.exhausted(self.config.maximum_attempts) and self.buffer.disable():
                logger.error(
                    f"{self.backoff.total_retries} reconnection attempts failed, "
                    f"disabling buffering ({len(self.buffer)} messages held)"
                )
                self._emit_error(BufferingDisabledError('Max entries eclipsed, disabling buffering'))

    # -- writes ----------------------------------------------------------

    def _enqueue(self, message: str) -> None:
        if not self._outgoing:
            self._last_progress = self.clock()
        self._outgoing.append(message.encode('utf-8'))

    def _flush_outgoing(self, stream) -> None:
        """Write queued chunks until the socket stops accepting data."""
        while self._outgoing:
            chunk = self._outgoing[0]
            written = stream.write(memoryview(chunk)[self._sent:])
            if not written:
                return
            self._last_progress = self.clock()
            self._sent += written
            if self._sent >= len(chunk):
                self._outgoing.popleft()
                self._sent = 0

    def _write_stalled(self) -> bool:
        return bool(self._outgoing) and (
            self.clock() - self._last_progress > self.config.write_timeout
        )

    def _requeue_outgoing(self) -> None:
        # A partly written chunk is cut off on the old stream; send it whole again
        while self._outgoing:
            self.buffer.append(self._outgoing.popleft().decode('utf-8'))
        self._sent = 0

    # -- helpers ---------------------------------------------------------

    def _drop_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        self._requeue_outgoing()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _emit_connect(self, message: str) -> None:
        if self._on_connect:
            self._on_connect(message)

    def _emit_error(self, error: BaseException) -> None:
        if self._on_error:
            self._on_error(error)
