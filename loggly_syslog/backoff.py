# loggly_syslog/backoff.py
"""Reconnection backoff policy."""

from dataclasses import dataclass, field


@dataclass
class BackoffPolicy:
    """Exponential decay of the delay between reconnection attempts.

    The delay doubles every ``attempts_before_decay`` failures for as long as
    it is still below ``max_delay``. The check happens before doubling, so the
    delay can end up one step above the maximum and then stays there.

    Usage:
        backoff = BackoffPolicy(base_delay=1000, max_delay=60000)

        backoff.record_failure()
        schedule(backoff.delay_seconds, reconnect)
        ...
        backoff.reset()     # on a successful connection
    """
    base_delay: int = 1000
    max_delay: int = 60000
    attempts_before_decay: int = 5
    delay: int = field(init=False)
    current_retries: int = field(default=0, init=False)
    total_retries: int = field(default=0, init=False)

    def __post_init__(self):
        self.delay = self.base_delay

    def record_failure(self) -> None:
        """Count a failed attempt and decay the delay when due."""
        self.current_retries += 1
        self.total_retries += 1

        if self.delay < self.max_delay and self.current_retries >= self.attempts_before_decay:
            self.delay = self.delay * 2
            self.current_retries = 0

    def reset(self) -> None:
        """Reset counters and delay after a successful connection."""
        self.current_retries = 0
        self.total_retries = 0
        self.delay = self.base_delay

    def exhausted(self, maximum_attempts: int) -> bool:
        """Check whether total retries reached the given limit."""
        return self.total_retries >= maximum_attempts

    @property
    def delay_seconds(self) -> float:
        """Current delay converted to seconds."""
        return self.delay / 1000.0
