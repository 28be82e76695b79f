"""
Session state machine module.

Drives the login handshake: Anonymous -> Submitting -> Authenticated.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from chat_client.connection.connection_manager import ConnectionManager
from chat_client.exceptions import ProtocolTimeoutError
from chat_client.utils.logger import logger
from chat_protocol.constants import EventTypes
from chat_protocol.protocol_definitions import create_set_username_message


class SessionState(Enum):
    ANONYMOUS = 'anonymous'
    SUBMITTING = 'submitting'
    AUTHENTICATED = 'authenticated'


@dataclass(frozen=True)
class Session:
    """Snapshot of the login session."""
    username: Optional[str]
    authenticated: bool


class SessionStateMachine:
    """Client-side login handshake."""

    def __init__(self, connection: ConnectionManager):
        self.connection = connection
        self.state = SessionState.ANONYMOUS
        self.username: Optional[str] = None
        self._auth_hooks: List[Callable[[], None]] = []
        self._login_timer: Optional[asyncio.TimerHandle] = None
        self.error_handler: Optional[Callable[[Exception], None]] = None
        self.change_handler: Optional[Callable[[], None]] = None

        connection.on(EventTypes.LOGGED_IN, self._on_logged_in)

    def add_auth_hook(self, hook: Callable[[], None]):
        """Run hook every time the session enters Authenticated."""
        self._auth_hooks.append(hook)

    def set_error_handler(self, handler: Callable[[Exception], None]):
        self.error_handler = handler

    def set_change_handler(self, handler: Callable[[], None]):
        self.change_handler = handler

    @property
    def session(self) -> Session:
        return Session(username=self.username, authenticated=self.is_authenticated)

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def username_locked(self) -> bool:
        """The username can no longer be edited once it has been submitted."""
        return self.state is not SessionState.ANONYMOUS

    def _transition(self, new_state: SessionState):
        old_state = self.state
        self.state = new_state
        logger.log_state_change('SESSION', old_state, new_state)
        if self.change_handler:
            self.change_handler()

    def submit_username(self, username: str) -> bool:
        """Send a login attempt. Returns False when the intent is ignored.

        Raises NotConnectedError, leaving the session Anonymous, when the
        connection is not established.
        """
        if self.state is not SessionState.ANONYMOUS:
            logger.warning(f"[SESSION] Username already submitted as '{self.username}'")
            return False
        username = (username or '').strip()
        if not username:
            return False

        self.connection.emit(EventTypes.SET_USERNAME, create_set_username_message(username))
        self.username = username
        logger.log_login(username, False)
        self._transition(SessionState.SUBMITTING)
        self._arm_login_timer()
        return True

    def _arm_login_timer(self):
        timeout = self.connection.config.login_timeout
        if timeout is None:
            return
        loop = asyncio.get_running_loop()
        self._login_timer = loop.call_later(timeout, self._on_login_timeout, timeout)

    def _cancel_login_timer(self):
        if self._login_timer is not None:
            self._login_timer.cancel()
            self._login_timer = None

    def _on_login_timeout(self, timeout: float):
        self._login_timer = None
        if self.state is not SessionState.SUBMITTING:
            return
        error = ProtocolTimeoutError(EventTypes.LOGGED_IN, timeout)
        logger.warning(f"[SESSION] {error}; still waiting")
        if self.error_handler:
            self.error_handler(error)

    def _on_logged_in(self, payload: Dict[str, Any]):
        if self.state is not SessionState.SUBMITTING:
            logger.warning(f"[SESSION] Ignoring '{EventTypes.LOGGED_IN}' while {self.state.value}")
            return
        self._cancel_login_timer()
        logger.log_login(self.username, True)
        self._transition(SessionState.AUTHENTICATED)
        for hook in self._auth_hooks:
            hook()

    def reset(self):
        """Return to Anonymous. Only used on a full client disconnect."""
        self._cancel_login_timer()
        self.username = None
        if self.state is not SessionState.ANONYMOUS:
            self._transition(SessionState.ANONYMOUS)
