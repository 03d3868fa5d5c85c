from typing import Any, Callable, List, Tuple

import pytest

from loggly_syslog.connection import Scheduler
from loggly_syslog.transport import LogglyTransport


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Records timers and background work; tests decide when they run."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []
        self.spawned: List[Tuple[str, Callable[[], None]]] = []

    def call_later(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def spawn(self, target, name):
        self.spawned.append((name, target))

    @property
    def pending_timers(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def run_spawned(self, name: str = "loggly-connect") -> int:
        """Run the work queued under ``name`` so far. Work it queues in turn is kept."""
        batch = [item for item in self.spawned if item[0] == name]
        self.spawned = [item for item in self.spawned if item[0] != name]
        for _, target in batch:
            target()
        return len(batch)

    def fire_timer(self) -> ManualTimer:
        pending = self.pending_timers
        assert pending, "no timer scheduled"
        timer = pending[-1]
        self.timers.remove(timer)
        timer.callback()
        return timer


class FakeStream:
    def __init__(self) -> None:
        self.written: List[bytes] = []
        self.events: List[Any] = []
        self.closed = False
        self.fail_writes = False
        self.stalled = False

    def write(self, data) -> int:
        if self.fail_writes:
            raise BrokenPipeError("broken pipe")
        if self.stalled:
            return 0
        self.written.append(bytes(data))
        return len(data)

    def wait(self, timeout: float, want_write: bool = False):
        # The I/O loop is only run by tests that queued an event or a stalled write.
        assert self.events or want_write, "stream polled with nothing to do"
        return bool(self.events), want_write

    def read(self):
        event = self.events.pop(0)
        if isinstance(event, BaseException):
            raise event
        return event

    def close(self) -> None:
        self.closed = True

    @property
    def text(self) -> str:
        return b"".join(self.written).decode("utf-8")


class FakeConnector:
    """Hands out queued outcomes; refuses the connection when none are queued."""

    def __init__(self) -> None:
        self.outcomes: List[Any] = []
        self.calls: List[Tuple[str, int]] = []

    def succeed(self) -> FakeStream:
        stream = FakeStream()
        self.outcomes.append(stream)
        return stream

    def fail(self, error: BaseException = None) -> None:
        self.outcomes.append(error or ConnectionRefusedError("connection refused"))

    def __call__(self, host: str, port: int):
        self.calls.append((host, port))
        outcome = self.outcomes.pop(0) if self.outcomes else ConnectionRefusedError("connection refused")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def make_transport(scheduler, connector):
    """Build a transport wired to the fakes; records every emitted event."""

    def factory(**options) -> LogglyTransport:
        options.setdefault("token", "test-token")
        options.setdefault("hostname", "testhost")
        options.setdefault("pid", 4242)
        options.setdefault("program", "tests")
        events = []
        transport = LogglyTransport(
            connector=connector,
            scheduler=scheduler,
            on_connect=lambda message: events.append(("connect", message)),
            on_error=lambda error: events.append(("error", error)),
            **options
        )
        transport.events = events
        return transport

    return factory


@pytest.fixture
def connect(scheduler, connector) -> Callable[[], FakeStream]:
    """Let the pending connection attempt succeed."""

    def succeed() -> FakeStream:
        stream = connector.succeed()
        assert scheduler.run_spawned("loggly-connect") == 1
        return stream

    return succeed


@pytest.fixture
def fail_attempt(scheduler, connector) -> Callable[[], None]:
    """Let the pending connection attempt fail and fire the retry timer."""

    def fail() -> None:
        connector.fail()
        assert scheduler.run_spawned("loggly-connect") == 1
        scheduler.fire_timer()

    return fail
