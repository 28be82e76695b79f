"""
Transcript aggregator module.

This module keeps the ordered, append-only chat history. Locally authored
messages are appended when they are sent; remote broadcasts are appended as
they arrive. Order is arrival order, never timestamp order.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from chat_client.connection.connection_manager import ConnectionManager
from chat_client.exceptions import NotConnectedError, SessionError
from chat_client.session.session_machine import SessionStateMachine
from chat_client.utils.logger import logger
from chat_protocol.constants import EventTypes
from chat_protocol.protocol_definitions import (
    Message, create_send_message_message, current_timestamp_ms
)


class TranscriptAggregator:
    """Client-side chat history."""

    def __init__(self, connection: ConnectionManager, session: SessionStateMachine,
                 clock: Callable[[], int] = current_timestamp_ms):
        self.connection = connection
        self.session = session
        self.clock = clock
        self.suppress_echo = connection.config.suppress_echo
        self.armed = False
        self._messages: List[Message] = []
        self.change_handler: Optional[Callable[[], None]] = None

        connection.on(EventTypes.MESSAGE, self.on_remote_message)

    def set_change_handler(self, handler: Callable[[], None]):
        self.change_handler = handler

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self):
        return len(self._messages)

    def arm(self):
        """Start accepting remote messages."""
        self.armed = True

    def disarm(self):
        self.armed = False

    def _append(self, message: Message):
        self._messages.append(message)
        if self.change_handler:
            self.change_handler()

    def send_local(self, text: str) -> Optional[Message]:
        """Append a locally authored message and ask the server to broadcast it.

        Returns None for blank text; any other text is kept as written. Raises
        SessionError before login and NotConnectedError (nothing appended)
        when the connection is down.
        """
        if not text or not text.strip():
            return None
        if not self.session.is_authenticated:
            raise SessionError(f"cannot send messages while {self.session.state.value}")
        if not self.connection.is_connected:
            raise NotConnectedError(EventTypes.SEND_MESSAGE, self.connection.state)

        message = Message(
            text=text,
            sender=self.session.username,
            connection_id=self.connection.connection_id,
            timestamp=self.clock()
        )
        self._append(message)
        self.connection.emit(EventTypes.SEND_MESSAGE, create_send_message_message(message))
        logger.log_chat_sent(text)
        return message

    def on_remote_message(self, payload: Dict[str, Any]):
        """Append a broadcast message delivered by the server."""
        if not self.armed:
            logger.debug("[CHAT] Ignoring message before login")
            return
        try:
            message = Message.from_payload(payload)
        except ValueError as e:
            logger.warning(f"[CHAT] Dropping malformed message: {e}")
            return

        # Our own broadcast echoed back; the local copy is already in place
        if self.suppress_echo and message.connection_id == self.connection.connection_id:
            logger.debug("[CHAT] Suppressed echo of own message")
            return

        logger.info(f"[CHAT] {message.sender}: {message.text}")
        self._append(message)
