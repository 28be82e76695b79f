"""
Connection manager module.

This module owns the single persistent connection to the chat server. It
establishes the websocket, tracks its lifecycle state, and fans incoming
protocol events out to the handlers registered at startup.
"""

import asyncio
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

import aiohttp

from chat_client.exceptions import NotConnectedError, TransportError
from chat_client.utils.config import ClientConfig
from chat_client.utils.logger import logger
from chat_protocol.constants import EventTypes
from chat_protocol.protocol_definitions import decode_frame, encode_frame


EventHandler = Callable[[Dict[str, Any]], None]

# Raised by the manager itself, never accepted off the wire once connected
LOCAL_EVENTS = (EventTypes.CONNECT, EventTypes.DISCONNECT)


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class ConnectionManager:
    """Client-side owner of the chat server connection."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.state = ConnectionState.DISCONNECTED
        self.connection_id: Optional[str] = None
        self.http_session: Optional[aiohttp.ClientSession] = None

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._dispatch_frozen = False
        self._closing = False
        self._listener_task: Optional[asyncio.Task] = None
        self._pending_sends: Set[asyncio.Task] = set()

        self.error_handler: Optional[Callable[[Exception], None]] = None
        self.state_handler: Optional[Callable[[ConnectionState], None]] = None

    def on(self, event: str, handler: EventHandler):
        """Register a handler for a named event. Only allowed before connect()."""
        if self._dispatch_frozen:
            raise RuntimeError(f"cannot register a handler for '{event}' after connect()")
        self._handlers[event].append(handler)

    def set_error_handler(self, handler: Callable[[Exception], None]):
        """Set the callback that observes transport errors."""
        self.error_handler = handler

    def set_state_handler(self, handler: Callable[[ConnectionState], None]):
        """Set the callback that observes lifecycle transitions."""
        self.state_handler = handler

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def _set_state(self, new_state: ConnectionState):
        if new_state is self.state:
            return
        old_state = self.state
        self.state = new_state
        logger.log_state_change('CONNECTION', old_state, new_state)
        if self.state_handler:
            self.state_handler(new_state)

    def _report_error(self, error: Exception):
        if self.error_handler:
            self.error_handler(error)

    async def connect(self):
        """Open the websocket and wait for the server's connect greeting.

        Raises TransportError when the connection cannot be established. The
        dispatch table is frozen from the first call on.
        """
        if self.state is not ConnectionState.DISCONNECTED:
            raise TransportError(f"connect() called while {self.state.value}")

        self._dispatch_frozen = True
        self._closing = False
        self._set_state(ConnectionState.CONNECTING)
        url = self.config.websocket_url

        if self.http_session is None or self.http_session.closed:
            self.http_session = aiohttp.ClientSession()

        try:
            self._ws, self.connection_id = await asyncio.wait_for(
                self._open(url), timeout=self.config.connect_timeout
            )
        except asyncio.TimeoutError as e:
            await self._abort_connect(url, TransportError(
                f"timed out connecting to {url} after {self.config.connect_timeout}s"), e)
        except TransportError as e:
            await self._abort_connect(url, e)
        except (aiohttp.ClientError, OSError) as e:
            await self._abort_connect(url, TransportError(f"could not connect to {url}: {e}"), e)

        logger.log_connection(url, True)
        self._set_state(ConnectionState.CONNECTED)
        self.dispatch(EventTypes.CONNECT, {'id': self.connection_id})
        self._listener_task = asyncio.create_task(self._listen(self._ws))

    async def _open(self, url: str):
        ws = await self.http_session.ws_connect(url)
        try:
            msg = await ws.receive()
            if msg.type != aiohttp.WSMsgType.TEXT:
                raise TransportError(f"connection closed before the connect greeting ({msg.type.name})")
            try:
                event, payload = decode_frame(msg.data)
            except ValueError as e:
                raise TransportError(f"malformed connect greeting: {e}")
            connection_id = payload.get('id')
            if event != EventTypes.CONNECT or not isinstance(connection_id, str) or not connection_id:
                raise TransportError(f"expected a '{EventTypes.CONNECT}' greeting with an id, got '{event}'")
        except BaseException:
            await ws.close()
            raise
        return ws, connection_id

    async def _abort_connect(self, url: str, error: TransportError, cause: Optional[BaseException] = None):
        logger.log_connection(url, False)
        logger.log_error("connection", error)
        self._ws = None
        self.connection_id = None
        if self.http_session is not None and not self.http_session.closed:
            await self.http_session.close()
        self._set_state(ConnectionState.DISCONNECTED)
        self._report_error(error)
        if cause is None:
            raise error
        raise error from cause

    async def _listen(self, ws: aiohttp.ClientWebSocketResponse):
        """Read frames until the websocket closes."""
        failure = None
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    failure = ws.exception()
                    break
                else:
                    logger.warning(f"[CONNECTION] Ignoring non-text frame ({msg.type.name})")
        except (aiohttp.ClientError, OSError) as e:
            failure = e

        if self._closing:
            return
        await self._handle_drop(failure)

    async def _handle_drop(self, failure: Optional[BaseException]):
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        reason = f": {failure}" if failure else ""
        error = TransportError(f"connection to {self.config.websocket_url} lost{reason}")
        logger.log_error("connection", error)
        self._ws = None
        self.connection_id = None
        self._set_state(ConnectionState.DISCONNECTED)
        self.dispatch(EventTypes.DISCONNECT, {})
        self._report_error(error)

    def _handle_frame(self, raw: str):
        try:
            event, payload = decode_frame(raw)
        except ValueError as e:
            logger.warning(f"[CONNECTION] Dropping malformed frame: {e}")
            return
        if event in LOCAL_EVENTS:
            logger.warning(f"[CONNECTION] Dropping server frame with local event name '{event}'")
            return
        self.dispatch(event, payload)

    def dispatch(self, event: str, payload: Dict[str, Any]):
        """Fan an event out to every registered handler, in registration order."""
        handlers = self._handlers.get(event)
        if not handlers:
            logger.debug(f"[CONNECTION] No handler for '{event}'")
            return
        for handler in handlers:
            try:
                handler(payload)
            except Exception as e:
                logger.log_error(f"'{event}' handler", e)

    def emit(self, event: str, payload: Optional[Dict[str, Any]] = None) -> asyncio.Task:
        """Send a protocol event without waiting for the write.

        Raises NotConnectedError when the connection is not established.
        """
        if self.state is not ConnectionState.CONNECTED or self._ws is None:
            raise NotConnectedError(event, self.state)
        frame = encode_frame(event, payload)
        task = asyncio.get_running_loop().create_task(self._send_frame(self._ws, event, frame))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)
        return task

    async def _send_frame(self, ws: aiohttp.ClientWebSocketResponse, event: str, frame: str):
        try:
            await ws.send_str(frame)
            logger.debug(f"[CONNECTION] Sent '{event}'")
        except (aiohttp.ClientError, OSError, RuntimeError) as e:
            error = TransportError(f"failed to send '{event}': {e}")
            logger.log_error("send", error)
            self._report_error(error)

    async def wait_closed(self):
        """Wait until the listener stops."""
        if self._listener_task is not None:
            await self._listener_task

    async def close(self):
        """Close the websocket and the HTTP session."""
        self._closing = True
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._listener_task is not None and not self._listener_task.done():
            await self._listener_task
        for task in list(self._pending_sends):
            task.cancel()
        if self.http_session is not None and not self.http_session.closed:
            await self.http_session.close()
        self._ws = None
        self.connection_id = None
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("[INFO] Disconnected from server")
