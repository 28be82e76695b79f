"""
Client logging module.

This module handles client-side logging functionality.
"""

import logging
import sys

from chat_protocol.constants import LOGGER_NAME


class ClientLogger:
    """Client logging class."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)

        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        self.logger.addHandler(console_handler)

    def set_level(self, level):
        """Change the level of the logger and its handlers."""
        if isinstance(level, str):
            resolved = logging.getLevelName(level.upper())
            if not isinstance(resolved, int):
                raise ValueError(f"unknown log level '{level}'")
            level = resolved
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_connection(self, url: str, success: bool):
        """Log connection attempt."""
        status = "Connected" if success else "Failed to connect"
        self.info(f"{status} to {url}")

    def log_state_change(self, component: str, old_state, new_state):
        """Log a lifecycle transition."""
        self.info(f"[{component}] {old_state.value} -> {new_state.value}")

    def log_login(self, username: str, success: bool):
        """Log login progress."""
        status = "Logged in" if success else "Submitted username"
        self.info(f"{status} as '{username}'")

    def log_roster_update(self, users: list):
        """Log a roster snapshot replacement."""
        self.info(f"[ROSTER] {len(users)} user(s) online")
        for user in users:
            self.debug(f"  - {user.username} (id={user.id})")

    def log_chat_sent(self, message: str):
        """Log chat message sent."""
        self.info(f"Chat sent: {message}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")


# Global logger instance
logger = ClientLogger()
