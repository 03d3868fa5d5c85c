from loggly_syslog.backoff import BackoffPolicy
from loggly_syslog.buffer import MessageBuffer


def test_delay_doubles_after_attempts_before_decay():
    backoff = BackoffPolicy(base_delay=1000, max_delay=60000, attempts_before_decay=5)

    for _ in range(4):
        backoff.record_failure()
    assert backoff.delay == 1000
    assert backoff.current_retries == 4

    backoff.record_failure()
    assert backoff.delay == 2000
    assert backoff.current_retries == 0
    assert backoff.total_retries == 5


def test_delay_overshoots_max_once_then_stops_growing():
    backoff = BackoffPolicy(base_delay=1000, max_delay=3000, attempts_before_decay=1)

    delays = []
    for _ in range(5):
        backoff.record_failure()
        delays.append(backoff.delay)

    assert delays == [2000, 4000, 4000, 4000, 4000]
    # current_retries only resets when a doubling happens
    assert backoff.current_retries == 3


def test_reset_restores_configured_base():
    backoff = BackoffPolicy(base_delay=250, max_delay=60000, attempts_before_decay=1)
    for _ in range(3):
        backoff.record_failure()

    backoff.reset()

    assert backoff.delay == 250
    assert backoff.current_retries == 0
    assert backoff.total_retries == 0
    assert backoff.delay_seconds == 0.25


def test_exhausted_compares_total_retries():
    backoff = BackoffPolicy(attempts_before_decay=2)
    backoff.record_failure()
    backoff.record_failure()
    assert backoff.current_retries == 0
    assert backoff.exhausted(2)
    assert not backoff.exhausted(3)


def test_buffer_keeps_arrival_order_and_clears_on_drain():
    buffer = MessageBuffer()
    for message in ("a\r\n", "b\r\n", "c\r\n"):
        assert buffer.append(message)

    assert len(buffer) == 3
    assert buffer.drain() == "a\r\nb\r\nc\r\n"
    assert not buffer
    assert buffer.drain() == ""


def test_disable_is_idempotent_and_keeps_contents():
    buffer = MessageBuffer()
    buffer.append("held\r\n")

    assert buffer.disable() is True
    assert buffer.disable() is False
    assert not buffer.append("lost\r\n")

    assert buffer.dropped == 1
    assert buffer.drain() == "held\r\n"


def test_enable_accepts_messages_again():
    buffer = MessageBuffer()
    buffer.disable()
    buffer.enable()
    assert buffer.enabled
    assert buffer.append("x\r\n")
