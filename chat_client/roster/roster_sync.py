"""
Roster synchronizer module.

Keeps the "who is online" view by re-pulling the full roster whenever the
server says it changed. Each fetch is a complete snapshot, so overlapping
refreshes simply race and the last one to complete wins.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

import aiohttp

from chat_client.connection.connection_manager import ConnectionManager
from chat_client.exceptions import RosterFetchError
from chat_client.utils.logger import logger
from chat_protocol.constants import ROSTER_INVALIDATION_EVENTS
from chat_protocol.protocol_definitions import User, parse_online_users


RosterFetcher = Callable[[], Awaitable[List[User]]]


class RosterSynchronizer:
    """Client-side online users view."""

    def __init__(self, connection: ConnectionManager, fetcher: Optional[RosterFetcher] = None):
        self.connection = connection
        self.fetcher = fetcher or self.fetch_online_users
        self.armed = False
        self.fetch_count = 0
        self._users: Dict[str, User] = {}
        self._in_flight: Set[asyncio.Task] = set()
        self.error_handler: Optional[Callable[[Exception], None]] = None
        self.change_handler: Optional[Callable[[], None]] = None

        for event in ROSTER_INVALIDATION_EVENTS:
            connection.on(event, self._on_roster_changed)

    def set_error_handler(self, handler: Callable[[Exception], None]):
        self.error_handler = handler

    def set_change_handler(self, handler: Callable[[], None]):
        self.change_handler = handler

    @property
    def users(self) -> Tuple[User, ...]:
        return tuple(self._users.values())

    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def arm(self):
        """Start reacting to roster change notifications."""
        self.armed = True

    def reset(self):
        """Stop reacting to notifications and forget the last snapshot."""
        self.armed = False
        self._users = {}
        for task in list(self._in_flight):
            task.cancel()

    def _on_roster_changed(self, payload: Dict[str, Any]):
        if not self.armed:
            logger.debug("[ROSTER] Ignoring roster change before login")
            return
        self.refresh()

    def refresh(self) -> asyncio.Task:
        """Schedule a full roster fetch and return its task."""
        self.fetch_count += 1
        task = asyncio.get_running_loop().create_task(self._refresh(self.fetch_count))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _refresh(self, request_no: int):
        try:
            users = await self.fetcher()
        except RosterFetchError as e:
            error = e
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            error = RosterFetchError(str(e))
        else:
            self._users = {user.id: user for user in users}
            logger.log_roster_update(users)
            if self.change_handler:
                self.change_handler()
            return

        # Existing roster is kept; the next notification retries naturally
        logger.log_error(f"roster refresh #{request_no}", error)
        if self.error_handler:
            self.error_handler(error)

    async def fetch_online_users(self) -> List[User]:
        """GET the roster endpoint and parse its ``onlineUsers`` list."""
        config = self.connection.config
        session = self.connection.http_session
        if session is None or session.closed:
            raise RosterFetchError("no open HTTP session")

        url = config.roster_url
        request_kwargs = {}
        if config.roster_timeout is not None:
            request_kwargs['timeout'] = aiohttp.ClientTimeout(total=config.roster_timeout)

        try:
            async with session.get(url, **request_kwargs) as response:
                if not 200 <= response.status < 300:
                    raise RosterFetchError(f"unexpected response from {url}", status_code=response.status)
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RosterFetchError(f"request to {url} failed: {e}") from e
        except ValueError as e:
            raise RosterFetchError(f"roster response is not JSON: {e}") from e

        try:
            return parse_online_users(body)
        except ValueError as e:
            raise RosterFetchError(f"malformed roster response: {e}") from e
