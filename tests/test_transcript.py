#!/usr/bin/env python3
"""
Unit tests for TranscriptAggregator.

Local sends are appended before the emit, remote broadcasts are appended in
arrival order, and our own echoed messages are dropped by connection id.
"""

import sys
import time
import unittest
from pathlib import Path
from unittest.mock import Mock

sys.path.insert(0, str(Path(__file__).parent.parent))

from fake_chat_server import make_connected_manager
from chat_client.chat.transcript import TranscriptAggregator
from chat_client.connection.connection_manager import ConnectionState
from chat_client.exceptions import NotConnectedError, SessionError
from chat_client.session.session_machine import SessionStateMachine
from chat_client.utils.config import ClientConfig
from chat_protocol.constants import EventTypes
from chat_protocol.protocol_definitions import Message, current_timestamp_ms


def remote(text, sender='bob', connection_id='x1', timestamp=5):
    return {'text': text, 'sender': sender, 'connectionId': connection_id, 'timestamp': timestamp}


class TranscriptTestCase(unittest.TestCase):

    def build(self, config=None, clock=lambda: 1000, login=True):
        self.connection = make_connected_manager(config)
        self.connection.emit = Mock()
        self.session = SessionStateMachine(self.connection)
        self.transcript = TranscriptAggregator(self.connection, self.session, clock=clock)
        self.changes = 0
        self.transcript.set_change_handler(self._count_change)
        if login:
            self.session.submit_username('alice')
            self.connection.dispatch(EventTypes.LOGGED_IN, {})
            self.transcript.arm()
            self.connection.emit.reset_mock()

    def _count_change(self):
        self.changes += 1


class TestSendLocal(TranscriptTestCase):
    """Locally authored messages."""

    def test_send_appends_and_emits(self):
        """send_local('hello') at t=1000 stores exactly that message."""
        self.build()
        message = self.transcript.send_local('hello')

        expected = Message(text='hello', sender='alice', connection_id='self-id', timestamp=1000)
        self.assertEqual(message, expected)
        self.assertEqual(self.transcript.messages, (expected,))
        self.assertEqual(self.changes, 1)
        self.connection.emit.assert_called_once_with(EventTypes.SEND_MESSAGE, {
            'text': 'hello', 'sender': 'alice', 'connectionId': 'self-id', 'timestamp': 1000
        })

    def test_blank_text_is_ignored(self):
        self.build()
        self.assertIsNone(self.transcript.send_local('   '))
        self.assertIsNone(self.transcript.send_local(''))
        self.assertEqual(len(self.transcript), 0)
        self.connection.emit.assert_not_called()

    def test_surrounding_whitespace_is_kept(self):
        self.build()
        text = '    def f():\n'
        message = self.transcript.send_local(text)

        self.assertEqual(message.text, text)
        self.assertEqual(self.transcript.messages[0].text, text)
        payload = self.connection.emit.call_args[0][1]
        self.assertEqual(payload['text'], text)

    def test_send_before_login_raises(self):
        self.build(login=False)
        with self.assertRaises(SessionError):
            self.transcript.send_local('hello')
        self.assertEqual(len(self.transcript), 0)

    def test_send_while_offline_appends_nothing(self):
        self.build()
        self.connection.state = ConnectionState.DISCONNECTED
        with self.assertRaises(NotConnectedError):
            self.transcript.send_local('hello')
        self.assertEqual(self.transcript.messages, ())
        self.connection.emit.assert_not_called()

    def test_wall_clock_timestamp_is_not_in_the_future(self):
        self.build(clock=current_timestamp_ms)
        before = int(time.time() * 1000)
        message = self.transcript.send_local('hello')
        self.assertGreaterEqual(message.timestamp, before)
        self.assertLessEqual(message.timestamp, int(time.time() * 1000))


class TestRemoteMessages(TranscriptTestCase):
    """Broadcasts delivered by the server."""

    def test_arrival_order_not_timestamp_order(self):
        self.build()
        self.connection.dispatch(EventTypes.MESSAGE, remote('second', timestamp=9))
        self.connection.dispatch(EventTypes.MESSAGE, remote('first', timestamp=1))
        self.assertEqual([m.text for m in self.transcript.messages], ['second', 'first'])
        self.assertEqual(self.changes, 2)

    def test_ignored_until_armed(self):
        self.build(login=False)
        self.connection.dispatch(EventTypes.MESSAGE, remote('hi'))
        self.assertEqual(len(self.transcript), 0)

    def test_malformed_payload_is_dropped(self):
        self.build()
        self.connection.dispatch(EventTypes.MESSAGE, {'text': 'no sender'})
        self.connection.dispatch(EventTypes.MESSAGE, remote('ok'))
        self.assertEqual([m.text for m in self.transcript.messages], ['ok'])

    def test_own_echo_is_suppressed(self):
        """The server echoing our message back adds nothing."""
        self.build()
        sent = self.transcript.send_local('hello')
        self.connection.dispatch(EventTypes.MESSAGE, sent.to_payload())
        self.assertEqual(self.transcript.messages, (sent,))

    def test_own_id_not_filtered_when_suppression_disabled(self):
        """With suppression off the server must never echo; nothing is filtered by id."""
        self.build(config=ClientConfig(suppress_echo=False))
        self.connection.dispatch(EventTypes.MESSAGE, remote('relayed', sender='alice', connection_id='self-id'))
        self.assertEqual([m.text for m in self.transcript.messages], ['relayed'])

    def test_disarm_stops_accepting(self):
        self.build()
        self.transcript.disarm()
        self.connection.dispatch(EventTypes.MESSAGE, remote('late'))
        self.assertEqual(len(self.transcript), 0)


if __name__ == '__main__':
    unittest.main()
