import io

import pytest

from loggly_syslog import main as cli
from loggly_syslog.transport import LogglyTransport


@pytest.fixture
def built(monkeypatch, scheduler, connector):
    """Route the CLI's transport through the fakes."""
    transports = []

    def factory(config, **listeners):
        transport = LogglyTransport(config, connector=connector, scheduler=scheduler, **listeners)
        transports.append(transport)
        return transport

    monkeypatch.setattr(cli, "LogglyTransport", factory)
    monkeypatch.delenv("LOGGLY_TOKEN", raising=False)
    return transports


def test_single_message_is_forwarded(built, tmp_path):
    code = cli.main([
        "--token", "abc", "--message", "deploy finished", "--level", "notice",
        "--tag", "ci", "--linger", "0", "--config", str(tmp_path / "none.yaml"),
    ])

    transport = built[0]
    assert code == 0
    assert transport.config.tags == ("ci",)
    assert len(transport.buffer) == 1
    assert transport.state.value == "disconnected"


def test_stdin_lines_are_forwarded_in_order(built, tmp_path, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("alpha-line\n\nbravo-line\r\ncharlie-line\n"))

    cli.main(["--token", "abc", "--linger", "0", "--config", str(tmp_path / "none.yaml")])

    pending = built[0].buffer.drain()
    assert pending.count("\r\n") == 3
    assert pending.index("alpha-line") < pending.index("bravo-line") < pending.index("charlie-line")


def test_missing_token_exits_with_error(built, tmp_path):
    assert cli.main(["--message", "x", "--config", str(tmp_path / "none.yaml")]) == 1
    assert built == []


def test_status_listeners_are_registered_at_construction(built, tmp_path):
    cli.main(["--token", "abc", "--message", "x", "--linger", "0", "--config", str(tmp_path / "none.yaml")])

    transport = built[0]
    assert transport._listeners["connect"] == [cli.print_connect]
    assert transport._listeners["error"] == [cli.print_error]
