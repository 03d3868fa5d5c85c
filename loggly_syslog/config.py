# loggly_syslog/config.py
"""Configuration loader and validator."""

import os
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml

from .encoder import LogFormat, build_structured_data, default_log_format
from .errors import ConfigurationError

DEFAULT_HOST = 'logs-01.loggly.com'
DEFAULT_PORT = 6514

# camelCase option names, accepted alongside the snake_case field names
OPTION_ALIASES = {
    'logFormat': 'log_format',
    'attemptsBeforeDecay': 'attempts_before_decay',
    'maximumAttempts': 'maximum_attempts',
    'connectionDelay': 'connection_delay',
    'maxDelayBetweenReconnection': 'max_delay_between_reconnection',
    'handleExceptions': 'handle_exceptions',
    'inlineMeta': 'inline_meta',
    'verifyCerts': 'verify_certs',
    'caCerts': 'ca_certs',
    'connectTimeout': 'connect_timeout',
    'writeTimeout': 'write_timeout',
}


@dataclass(frozen=True)
class TransportConfig:
    """Immutable settings for one Loggly transport.

    Delays are in milliseconds. ``structured_data`` is derived from the
    token and tags when the config is built and never changes afterwards.
    """
    token: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    tags: Tuple[str, ...] = ()
    hostname: str = field(default_factory=socket.gethostname)
    pid: Any = field(default_factory=os.getpid)
    program: str = 'default'
    level: str = 'info'
    log_format: LogFormat = default_log_format
    attempts_before_decay: int = 5
    maximum_attempts: int = 25
    connection_delay: int = 1000
    max_delay_between_reconnection: int = 60000
    handle_exceptions: bool = False
    inline_meta: bool = False
    verify_certs: bool = False
    ca_certs: Optional[str] = None
    connect_timeout: float = 10.0
    write_timeout: float = 30.0
    structured_data: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.token:
            raise ConfigurationError('Missing required parameters: token')
        if not 0 < int(self.port) < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}")
        for name in ('attempts_before_decay', 'maximum_attempts',
                     'connection_delay', 'max_delay_between_reconnection'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.write_timeout <= 0:
            raise ConfigurationError('write_timeout must be positive')
        if not callable(self.log_format):
            raise ConfigurationError('log_format must be callable')

        # Frozen dataclass: tags may arrive as a list or a single string, keep a tuple
        tags = (self.tags,) if isinstance(self.tags, str) else tuple(self.tags or ())
        object.__setattr__(self, 'tags', tags)
        object.__setattr__(self, 'port', int(self.port))
        object.__setattr__(
            self, 'structured_data', build_structured_data(self.token, self.tags)
        )

    @classmethod
    def from_options(cls, **options) -> 'TransportConfig':
        """Build a config from keyword options, dropping unset values."""
        return cls(**normalize_options(options))


def normalize_options(options: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase option names to field names and drop ``None`` values."""
    known = {f for f in TransportConfig.__dataclass_fields__ if f != 'structured_data'}
    normalized = {}
    for key, value in options.items():
        name = OPTION_ALIASES.get(key, key)
        if name not in known:
            raise ConfigurationError(f"Unknown option: {key}")
        if value is not None:
            normalized[name] = value
    if 'token' not in normalized:
        raise ConfigurationError('Missing required parameters: token')
    return normalized


def load_config(config_path: str = "config.yaml", **overrides) -> TransportConfig:
    """Load transport configuration from a YAML file.

    Values are taken from the ``loggly`` section of the file, then
    ``LOGGLY_TOKEN`` fills in a missing token, then explicit overrides win.
    """
    options: Dict[str, Any] = {}

    if config_path and os.path.exists(config_path):
        with open(config_path, 'r') as f:
            file_config = yaml.safe_load(f) or {}
        options.update(file_config.get('loggly') or {})

    if not options.get('token') and os.getenv('LOGGLY_TOKEN'):
        options['token'] = os.getenv('LOGGLY_TOKEN')

    options.update({k: v for k, v in overrides.items() if v is not None})
    return TransportConfig.from_options(**options)
