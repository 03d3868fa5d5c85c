# loggly_syslog/encoder.py
"""RFC 5424 wire-format encoding for Loggly syslog messages."""

import json
from datetime import datetime, timezone
from pprint import pformat
from typing import Any, Callable, Dict, Optional

LogFormat = Callable[[Any, Dict[str, Any]], str]

# Syslog Facility Codes (only user-level messages are sent)
FACILITY_USER = 1

# Syslog Severity Codes
SEVERITIES = {
    'emerg': 0, 'alert': 1, 'crit': 2, 'error': 3,
    'warning': 4, 'notice': 5, 'info': 6, 'debug': 7
}

DEFAULT_SEVERITY = SEVERITIES['info']

SYSLOG_VERSION = 1

# Loggly reads MSGID literally, quotes included
MESSAGE_ID = '"-"'


def get_priority(level: str) -> int:
    """Return the syslog severity number for a level name, defaulting to info."""
    return SEVERITIES.get(level, DEFAULT_SEVERITY)


def calculate_priority(level: str) -> int:
    """Calculate the PRI value for a user-level message."""
    return (FACILITY_USER * 8) + get_priority(level)


def get_iso_timestamp(ts: Optional[datetime] = None) -> str:
    """Generate an RFC 5424 timestamp in UTC with millisecond precision."""
    ts = ts or datetime.now(timezone.utc)
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime('%Y-%m-%dT%H:%M:%S.') + f'{ts.microsecond // 1000:03d}Z'


def build_structured_data(token: str, tags=()) -> str:
    """Build the structured-data element carrying the customer token and tags."""
    parts = [f'[{token}@41058']
    for tag in tags:
        parts.append(f' tag="{tag}"')
    parts.append(']')
    return ''.join(parts)


def default_log_format(message: Any, meta: Optional[Dict[str, Any]]) -> str:
    """Serialize metadata as one JSON line, with the message under ``log_msg``."""
    body = dict(meta) if meta else {}
    if message:
        body['log_msg'] = message
    return json.dumps(body, default=str)


def stringify_message(message: Any) -> Any:
    """Render non-string messages the way an interactive inspector would."""
    if message is None or isinstance(message, str):
        return message
    return pformat(message)


def encode_message(
    level: str,
    message: Any,
    meta: Optional[Dict[str, Any]],
    *,
    hostname: str,
    program: str,
    pid: Any,
    structured_data: str,
    log_format: LogFormat = default_log_format,
    timestamp: Optional[datetime] = None
) -> str:
    """Encode one log entry as a CRLF-terminated syslog line."""
    if meta is None:
        meta = {}
    body = log_format(stringify_message(message), meta)

    return (
        f"<{calculate_priority(level)}>{SYSLOG_VERSION} "
        f"{get_iso_timestamp(timestamp)} "
        f"{hostname} {program} {pid} {MESSAGE_ID} "
        f"{structured_data} {body}\r\n"
    )
