"""
Shared constants for the chat sync client.

This module contains the defaults and event names used across client components.
"""

# Network Configuration
DEFAULT_ADDRESS = 'http://localhost:3030'
DEFAULT_WS_PATH = '/ws'
DEFAULT_ROSTER_PATH = '/online-users'

# Timeouts (None means: no client-side timeout, library defaults apply)
DEFAULT_CONNECT_TIMEOUT = None
DEFAULT_ROSTER_TIMEOUT = None
DEFAULT_LOGIN_TIMEOUT = None

# Logging
DEFAULT_LOG_LEVEL = 'INFO'
LOGGER_NAME = 'chat_sync_client'

# Environment variables
ENV_ADDRESS = 'CHAT_SERVER_ADDRESS'
ENV_CONNECT_TIMEOUT = 'CHAT_CONNECT_TIMEOUT'
ENV_ROSTER_TIMEOUT = 'CHAT_ROSTER_TIMEOUT'
ENV_LOGIN_TIMEOUT = 'CHAT_LOGIN_TIMEOUT'
ENV_LOG_LEVEL = 'CHAT_LOG_LEVEL'


# Event Types
class EventTypes:
    # Client to Server
    SET_USERNAME = 'setUsername'
    SEND_MESSAGE = 'sendmessage'

    # Server to Client
    CONNECT = 'connect'
    LOGGED_IN = 'loggedin'
    NEW_CONNECTION = 'newConnection'
    USER_DISCONNECTED = 'userDisconnected'
    MESSAGE = 'message'

    # Client-local, dispatched when the transport drops
    DISCONNECT = 'disconnect'


# Server pushes that invalidate the roster
ROSTER_INVALIDATION_EVENTS = (EventTypes.NEW_CONNECTION, EventTypes.USER_DISCONNECTED)
