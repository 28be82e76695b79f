"""
Client configuration module.

This module handles client-side configuration settings.
"""

import os
from typing import Optional
from urllib.parse import urlsplit

from chat_protocol.constants import (
    DEFAULT_ADDRESS, DEFAULT_WS_PATH, DEFAULT_ROSTER_PATH,
    DEFAULT_CONNECT_TIMEOUT, DEFAULT_ROSTER_TIMEOUT, DEFAULT_LOGIN_TIMEOUT,
    DEFAULT_LOG_LEVEL, ENV_ADDRESS, ENV_CONNECT_TIMEOUT, ENV_ROSTER_TIMEOUT,
    ENV_LOGIN_TIMEOUT, ENV_LOG_LEVEL
)


def normalize_address(address: str) -> str:
    """Turn ``host:port`` or ``http(s)://host:port`` into an http(s) base URL."""
    address = (address or '').strip()
    if not address:
        raise ValueError("server address must not be empty")
    if '://' not in address:
        address = f"http://{address}"
    parts = urlsplit(address)
    if parts.scheme not in ('http', 'https'):
        raise ValueError(f"unsupported address scheme '{parts.scheme}' (use http or https)")
    if not parts.hostname:
        raise ValueError(f"server address '{address}' has no host")
    return f"{parts.scheme}://{parts.netloc}"


def _parse_timeout(name: str, value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == '':
        return None
    try:
        seconds = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got '{value}'")
    if seconds <= 0:
        raise ValueError(f"{name} must be positive, got {seconds}")
    return seconds


class ClientConfig:
    """Client configuration class."""

    def __init__(self, address: str = DEFAULT_ADDRESS, ws_path: str = DEFAULT_WS_PATH,
                 roster_path: str = DEFAULT_ROSTER_PATH,
                 connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT,
                 roster_timeout: Optional[float] = DEFAULT_ROSTER_TIMEOUT,
                 login_timeout: Optional[float] = DEFAULT_LOGIN_TIMEOUT,
                 suppress_echo: bool = True, log_level: str = DEFAULT_LOG_LEVEL):
        self.address = normalize_address(address)
        self.ws_path = ws_path if ws_path.startswith('/') else f"/{ws_path}"
        self.roster_path = roster_path if roster_path.startswith('/') else f"/{roster_path}"

        # Timeout settings (seconds, None disables)
        self.connect_timeout = connect_timeout
        self.roster_timeout = roster_timeout
        self.login_timeout = login_timeout

        # Transcript settings
        self.suppress_echo = suppress_echo

        self.log_level = log_level.upper()

    @classmethod
    def from_env(cls, **overrides) -> 'ClientConfig':
        """Build a configuration from CHAT_* environment variables."""
        settings = {
            'address': os.environ.get(ENV_ADDRESS, DEFAULT_ADDRESS),
            'connect_timeout': _parse_timeout(ENV_CONNECT_TIMEOUT, os.environ.get(ENV_CONNECT_TIMEOUT)),
            'roster_timeout': _parse_timeout(ENV_ROSTER_TIMEOUT, os.environ.get(ENV_ROSTER_TIMEOUT)),
            'login_timeout': _parse_timeout(ENV_LOGIN_TIMEOUT, os.environ.get(ENV_LOGIN_TIMEOUT)),
            'log_level': os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL),
        }
        settings.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**settings)

    @property
    def http_base_url(self) -> str:
        return self.address

    @property
    def websocket_url(self) -> str:
        """Websocket URL of the persistent connection."""
        if self.address.startswith('https://'):
            base = 'wss://' + self.address[len('https://'):]
        else:
            base = 'ws://' + self.address[len('http://'):]
        return f"{base}{self.ws_path}"

    @property
    def roster_url(self) -> str:
        return f"{self.address}{self.roster_path}"

    def get_connection_info(self):
        """Get connection information."""
        return {
            'address': self.address,
            'websocket_url': self.websocket_url,
            'roster_url': self.roster_url
        }

    def get_timeout_settings(self):
        """Get timeout settings."""
        return {
            'connect_timeout': self.connect_timeout,
            'roster_timeout': self.roster_timeout,
            'login_timeout': self.login_timeout
        }
