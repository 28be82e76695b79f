#!/usr/bin/env python3
"""
Chat Sync Client - Core Composition

This module wires the connection manager, session state machine, roster
synchronizer and transcript aggregator into one client, and exposes the two
user intents plus read-only snapshots for the presentation layer.
"""

import asyncio
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from chat_client.chat.transcript import TranscriptAggregator
from chat_client.connection.connection_manager import ConnectionManager, ConnectionState
from chat_client.exceptions import ChatClientError, RosterFetchError, TransportError
from chat_client.roster.roster_sync import RosterFetcher, RosterSynchronizer
from chat_client.session.session_machine import SessionState, SessionStateMachine
from chat_client.utils.config import ClientConfig
from chat_client.utils.logger import logger
from chat_protocol.constants import EventTypes
from chat_protocol.protocol_definitions import Message, User, current_timestamp_ms


@dataclass(frozen=True)
class ClientSnapshot:
    """Read-only view of the client state for rendering."""
    connection_state: ConnectionState
    session_state: SessionState
    username: Optional[str]
    connection_id: Optional[str]
    users: Tuple[User, ...]
    messages: Tuple[Message, ...]
    last_error: Optional[Exception]

    @property
    def username_locked(self) -> bool:
        return self.session_state is not SessionState.ANONYMOUS

    @property
    def can_send_messages(self) -> bool:
        return (self.session_state is SessionState.AUTHENTICATED
                and self.connection_state is ConnectionState.CONNECTED)

    @property
    def is_offline(self) -> bool:
        return self.connection_state is ConnectionState.DISCONNECTED


class ChatSyncClient:
    """Main client class that integrates all functionality."""

    def __init__(self, config: Optional[ClientConfig] = None,
                 roster_fetcher: Optional[RosterFetcher] = None,
                 clock: Callable[[], int] = current_timestamp_ms):
        self.config = config or ClientConfig()
        self.last_error: Optional[Exception] = None
        self._snapshot_handlers: List[Callable[[ClientSnapshot], None]] = []

        # Initialize modules
        self.connection = ConnectionManager(self.config)
        self.session = SessionStateMachine(self.connection)
        self.roster = RosterSynchronizer(self.connection, fetcher=roster_fetcher)
        self.transcript = TranscriptAggregator(self.connection, self.session, clock=clock)

        self._setup_modules()

    def _setup_modules(self):
        """Register the dispatch table and observers, once."""
        self.connection.on(EventTypes.CONNECT, self._on_connect)
        self.connection.on(EventTypes.DISCONNECT, self._on_disconnect)
        self.session.add_auth_hook(self._on_authenticated)

        self.connection.set_error_handler(self._on_error)
        self.session.set_error_handler(self._on_error)
        self.roster.set_error_handler(self._on_error)

        self.connection.set_state_handler(lambda state: self._notify())
        self.session.set_change_handler(self._notify)
        self.roster.set_change_handler(self._on_roster_updated)
        self.transcript.set_change_handler(self._notify)

    def add_snapshot_handler(self, handler: Callable[[ClientSnapshot], None]):
        """Call handler with a fresh snapshot after every state change."""
        self._snapshot_handlers.append(handler)

    def snapshot(self) -> ClientSnapshot:
        return ClientSnapshot(
            connection_state=self.connection.state,
            session_state=self.session.state,
            username=self.session.username,
            connection_id=self.connection.connection_id,
            users=self.roster.users,
            messages=self.transcript.messages,
            last_error=self.last_error
        )

    def _notify(self):
        if not self._snapshot_handlers:
            return
        snapshot = self.snapshot()
        for handler in self._snapshot_handlers:
            handler(snapshot)

    def _on_connect(self, payload):
        self.last_error = None
        logger.info(f"[INFO] Connection established (id={payload.get('id')})")
        self._notify()

    def _on_disconnect(self, payload):
        logger.warning("[INFO] Server connection lost; reconnection is not attempted")

    def _on_error(self, error: Exception):
        self.last_error = error
        self._notify()

    def _on_roster_updated(self):
        if isinstance(self.last_error, RosterFetchError):
            self.last_error = None
        self._notify()

    def _on_authenticated(self):
        """Arm the listeners that only logged-in participants may use."""
        self.roster.arm()
        self.transcript.arm()
        self.roster.refresh()

    # User intents

    def submit_username(self, username: str) -> bool:
        return self.session.submit_username(username)

    def send_message(self, text: str) -> Optional[Message]:
        return self.transcript.send_local(text)

    async def start(self):
        """Connect to the server. Raises TransportError on failure."""
        await self.connection.connect()

    async def run(self):
        """Connect and stay until the connection closes."""
        await self.start()
        await self.connection.wait_closed()

    async def close(self):
        """Full disconnect: the session starts over as Anonymous."""
        self.session.reset()
        self.roster.reset()
        self.transcript.disarm()
        await self.connection.close()

    def show_users(self):
        users = self.roster.users
        logger.info(f"[INFO] Online users ({len(users)}):")
        for user in users:
            logger.info(f"  - {user.username} (id={user.id})")

    async def interactive_mode(self, username: str):
        """Run client with interactive chat input."""
        try:
            await self.start()
        except TransportError:
            await self.close()
            return

        if not self.submit_username(username):
            logger.error(f"[ERROR] Invalid username '{username}'")
            await self.close()
            return

        logger.info("[INFO] Type messages to chat (Ctrl+C to exit)")
        logger.info("[INFO] Commands: /users /quit")

        loop = asyncio.get_running_loop()
        try:
            while self.connection.is_connected:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                text = line.strip()
                if not text:
                    continue
                if text == '/quit':
                    break
                if text == '/users':
                    self.show_users()
                    continue
                try:
                    self.send_message(text)
                except ChatClientError as e:
                    logger.warning(f"[WARN] Message not sent: {e}")
        except asyncio.CancelledError:
            pass
        finally:
            await self.close()
