#!/usr/bin/env python3
"""
Unit tests for the wire structures in chat_protocol.protocol_definitions.
"""

import json
import sys
import time
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from chat_protocol.constants import EventTypes
from chat_protocol.protocol_definitions import (
    Message, User, current_timestamp_ms, decode_frame, encode_frame, parse_online_users,
    create_set_username_message
)


class TestFrames(unittest.TestCase):
    """Frame encoding and decoding."""

    def test_encode_puts_event_in_type_field(self):
        frame = json.loads(encode_frame(EventTypes.SET_USERNAME, create_set_username_message('alice')))
        self.assertEqual(frame, {'type': 'setUsername', 'username': 'alice'})

    def test_encode_without_payload(self):
        self.assertEqual(json.loads(encode_frame(EventTypes.LOGGED_IN)), {'type': 'loggedin'})

    def test_decode_splits_event_and_payload(self):
        event, payload = decode_frame('{"type": "connect", "id": "abc"}')
        self.assertEqual(event, 'connect')
        self.assertEqual(payload, {'id': 'abc'})

    def test_decode_rejects_malformed_frames(self):
        for raw in ('not json', '[1, 2]', '{"id": "abc"}', '{"type": ""}', '{"type": 5}'):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    decode_frame(raw)


class TestMessage(unittest.TestCase):
    """Message record conversions."""

    def test_payload_uses_wire_field_names(self):
        message = Message(text='hi', sender='alice', connection_id='c1', timestamp=1000)
        self.assertEqual(message.to_payload(), {
            'text': 'hi', 'sender': 'alice', 'connectionId': 'c1', 'timestamp': 1000
        })

    def test_from_payload_keeps_every_field(self):
        message = Message(text='héllo 👋', sender='alice', connection_id='c1', timestamp=1700000000123)
        self.assertEqual(Message.from_payload(message.to_payload()), message)

    def test_from_payload_rejects_missing_or_mistyped_fields(self):
        good = {'text': 'hi', 'sender': 'bob', 'connectionId': 'c2', 'timestamp': 5}
        broken = [
            None,
            'hi',
            {k: v for k, v in good.items() if k != 'text'},
            dict(good, sender=3),
            dict(good, connectionId=None),
            dict(good, timestamp='5'),
            dict(good, timestamp=True),
        ]
        for payload in broken:
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    Message.from_payload(payload)

    def test_message_is_immutable(self):
        message = Message(text='hi', sender='alice', connection_id='c1', timestamp=1)
        with self.assertRaises(Exception):
            message.text = 'changed'

    def test_current_timestamp_is_epoch_milliseconds(self):
        before = int(time.time() * 1000)
        stamp = current_timestamp_ms()
        after = int(time.time() * 1000)
        self.assertTrue(before <= stamp <= after)


class TestOnlineUsers(unittest.TestCase):
    """Roster response parsing."""

    def test_parse_online_users(self):
        users = parse_online_users({'onlineUsers': [{'id': 'x1', 'username': 'bob'}]})
        self.assertEqual(users, [User(id='x1', username='bob')])

    def test_parse_empty_roster(self):
        self.assertEqual(parse_online_users({'onlineUsers': []}), [])

    def test_parse_rejects_bad_bodies(self):
        for body in (None, [], {}, {'onlineUsers': {}}, {'onlineUsers': [{'id': 'x1'}]}):
            with self.subTest(body=body):
                with self.assertRaises(ValueError):
                    parse_online_users(body)


if __name__ == '__main__':
    unittest.main()
