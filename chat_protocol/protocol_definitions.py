"""
Protocol definitions for the chat sync client.

This module defines the message structures and frame formats used in
communication between the client and the chat server. Every frame is a JSON
object whose ``type`` field names the event; payload fields sit beside it.
"""

import json
import time
from typing import Dict, Any, List, Optional, Tuple
from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """Online user structure."""
    id: str
    username: str

    @classmethod
    def from_payload(cls, data: Any) -> 'User':
        """Build a User from a roster entry, raising ValueError when malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"user entry must be an object, got {type(data).__name__}")
        user_id = data.get('id')
        username = data.get('username')
        if not isinstance(user_id, str) or not isinstance(username, str):
            raise ValueError(f"user entry needs string 'id' and 'username': {data!r}")
        return cls(id=user_id, username=username)

    def to_payload(self) -> Dict[str, Any]:
        return {'id': self.id, 'username': self.username}


@dataclass(frozen=True)
class Message:
    """Chat message structure."""
    text: str
    sender: str
    connection_id: str
    timestamp: int

    @classmethod
    def from_payload(cls, data: Any) -> 'Message':
        """Build a Message from a wire payload, raising ValueError when malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"message payload must be an object, got {type(data).__name__}")
        text = data.get('text')
        sender = data.get('sender')
        connection_id = data.get('connectionId')
        timestamp = data.get('timestamp')
        if not isinstance(text, str) or not isinstance(sender, str):
            raise ValueError("message needs string 'text' and 'sender'")
        if not isinstance(connection_id, str):
            raise ValueError("message needs string 'connectionId'")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError("message needs integer 'timestamp'")
        return cls(text=text, sender=sender, connection_id=connection_id, timestamp=timestamp)

    def to_payload(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'sender': self.sender,
            'connectionId': self.connection_id,
            'timestamp': self.timestamp
        }


def current_timestamp_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def parse_online_users(body: Any) -> List[User]:
    """Parse a roster response body of the form ``{"onlineUsers": [...]}``."""
    if not isinstance(body, dict):
        raise ValueError("roster response must be a JSON object")
    entries = body.get('onlineUsers')
    if not isinstance(entries, list):
        raise ValueError("roster response is missing the 'onlineUsers' list")
    return [User.from_payload(entry) for entry in entries]


def encode_frame(event: str, payload: Optional[Dict[str, Any]] = None) -> str:
    """Serialize an event and its payload into a text frame."""
    frame = dict(payload or {})
    frame['type'] = event
    return json.dumps(frame)


def decode_frame(raw: str) -> Tuple[str, Dict[str, Any]]:
    """Split a text frame into (event, payload), raising ValueError when malformed."""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"frame is not valid JSON: {e}") from e
    if not isinstance(frame, dict):
        raise ValueError("frame must be a JSON object")
    event = frame.pop('type', None)
    if not isinstance(event, str) or not event:
        raise ValueError("frame is missing its 'type'")
    return event, frame


def create_set_username_message(username: str) -> Dict[str, Any]:
    """Create a login attempt payload."""
    return {
        "username": username
    }


def create_send_message_message(message: Message) -> Dict[str, Any]:
    """Create a broadcast request payload."""
    return message.to_payload()


def create_connect_message(connection_id: str) -> Dict[str, Any]:
    """Create the server greeting payload carrying the assigned connection id."""
    return {
        "id": connection_id
    }


def create_online_users_response(users: List[User]) -> Dict[str, Any]:
    """Create a roster endpoint response body."""
    return {
        "onlineUsers": [user.to_payload() for user in users]
    }
