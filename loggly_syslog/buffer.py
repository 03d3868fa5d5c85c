# loggly_syslog/buffer.py
"""In-memory buffer for messages logged while disconnected."""

import logging
from typing import List

logger = logging.getLogger(__name__)


class MessageBuffer:
    """Ordered, memory-only store of encoded messages awaiting a connection.

    Buffering can be disabled to stop growth during long outages. Disabling
    keeps what is already stored; those messages are still flushed if a
    connection eventually succeeds.
    """

    def __init__(self):
        self._messages: List[str] = []
        self._enabled = True
        self._dropped = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def dropped(self) -> int:
        """Number of messages refused while buffering was disabled."""
        return self._dropped

    def append(self, message: str) -> bool:
        """Store a message if buffering is enabled. Returns whether it was kept."""
        if not self._enabled:
            self.record_drop()
            return False
        self._messages.append(message)
        return True

    def record_drop(self) -> None:
        self._dropped += 1
        logger.debug("Buffering disabled, dropping message")

    def disable(self) -> bool:
        """Stop accepting messages. Returns True only when the state changed."""
        if not self._enabled:
            return False
        self._enabled = False
        return True

    def enable(self) -> None:
        self._enabled = True

    def drain(self) -> str:
        """Return all stored messages in arrival order and clear the buffer."""
        data = ''.join(self._messages)
        self._messages = []
        return data

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)
