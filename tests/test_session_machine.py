#!/usr/bin/env python3
"""
Unit tests for the login handshake in SessionStateMachine.

The connection is a real ConnectionManager put into the Connected state with
emit() mocked, so events are dispatched through the real dispatch table.
"""

import asyncio
import sys
import unittest
from pathlib import Path
from unittest.mock import Mock

sys.path.insert(0, str(Path(__file__).parent.parent))

from fake_chat_server import make_connected_manager
from chat_client.connection.connection_manager import ConnectionManager, ConnectionState
from chat_client.exceptions import NotConnectedError, ProtocolTimeoutError
from chat_client.session.session_machine import SessionState, SessionStateMachine
from chat_client.utils.config import ClientConfig
from chat_protocol.constants import EventTypes


class TestSessionStateMachine(unittest.TestCase):
    """Transitions Anonymous -> Submitting -> Authenticated."""

    def setUp(self):
        self.connection = make_connected_manager()
        self.connection.emit = Mock()
        self.session = SessionStateMachine(self.connection)
        self.hook = Mock()
        self.session.add_auth_hook(self.hook)
        self.seen_states = []
        self.session.set_change_handler(lambda: self.seen_states.append(self.session.state))

    def test_starts_anonymous(self):
        self.assertIs(self.session.state, SessionState.ANONYMOUS)
        self.assertIsNone(self.session.username)
        self.assertFalse(self.session.username_locked)
        self.assertFalse(self.session.session.authenticated)

    def test_submit_username_locks_field_without_authenticating(self):
        """Submitting 'alice' sets the username optimistically and emits setUsername."""
        self.assertTrue(self.session.submit_username('alice'))

        self.assertIs(self.session.state, SessionState.SUBMITTING)
        self.assertEqual(self.session.username, 'alice')
        self.assertTrue(self.session.username_locked)
        self.assertFalse(self.session.is_authenticated)
        self.connection.emit.assert_called_once_with(EventTypes.SET_USERNAME, {'username': 'alice'})
        self.hook.assert_not_called()

    def test_username_is_trimmed(self):
        self.session.submit_username('  alice \n')
        self.assertEqual(self.session.username, 'alice')
        self.connection.emit.assert_called_once_with(EventTypes.SET_USERNAME, {'username': 'alice'})

    def test_blank_username_is_ignored(self):
        for name in ('', '   ', None):
            with self.subTest(name=name):
                self.assertFalse(self.session.submit_username(name))
        self.assertIs(self.session.state, SessionState.ANONYMOUS)
        self.connection.emit.assert_not_called()

    def test_second_submission_is_ignored(self):
        self.session.submit_username('alice')
        self.assertFalse(self.session.submit_username('mallory'))
        self.assertEqual(self.session.username, 'alice')
        self.assertEqual(self.connection.emit.call_count, 1)

    def test_loggedin_authenticates_and_runs_hooks_once(self):
        self.session.submit_username('alice')
        self.connection.dispatch(EventTypes.LOGGED_IN, {})

        self.assertIs(self.session.state, SessionState.AUTHENTICATED)
        self.assertTrue(self.session.session.authenticated)
        self.assertEqual(self.session.session.username, 'alice')
        self.hook.assert_called_once_with()
        self.assertEqual(self.seen_states, [SessionState.SUBMITTING, SessionState.AUTHENTICATED])

    def test_loggedin_while_anonymous_is_ignored(self):
        """No state skips Submitting."""
        self.connection.dispatch(EventTypes.LOGGED_IN, {})
        self.assertIs(self.session.state, SessionState.ANONYMOUS)
        self.hook.assert_not_called()
        self.assertEqual(self.seen_states, [])

    def test_repeated_loggedin_does_not_rerun_hooks(self):
        self.session.submit_username('alice')
        self.connection.dispatch(EventTypes.LOGGED_IN, {})
        self.connection.dispatch(EventTypes.LOGGED_IN, {})
        self.assertIs(self.session.state, SessionState.AUTHENTICATED)
        self.hook.assert_called_once_with()

    def test_authenticated_survives_transport_drop(self):
        self.session.submit_username('alice')
        self.connection.dispatch(EventTypes.LOGGED_IN, {})
        self.connection.state = ConnectionState.DISCONNECTED
        self.connection.dispatch(EventTypes.DISCONNECT, {})
        self.assertIs(self.session.state, SessionState.AUTHENTICATED)

    def test_reset_returns_to_anonymous(self):
        self.session.submit_username('alice')
        self.connection.dispatch(EventTypes.LOGGED_IN, {})
        self.session.reset()
        self.assertIs(self.session.state, SessionState.ANONYMOUS)
        self.assertIsNone(self.session.username)
        self.assertFalse(self.session.username_locked)


class TestSessionWhileDisconnected(unittest.TestCase):
    """Submitting without a connection."""

    def test_not_connected_leaves_session_anonymous(self):
        connection = ConnectionManager(ClientConfig())
        session = SessionStateMachine(connection)

        with self.assertRaises(NotConnectedError):
            session.submit_username('alice')

        self.assertIs(session.state, SessionState.ANONYMOUS)
        self.assertIsNone(session.username)


class TestLoginTimeout(unittest.IsolatedAsyncioTestCase):
    """The optional login timeout only reports; it never changes state."""

    def make_session(self, login_timeout):
        connection = make_connected_manager(ClientConfig(login_timeout=login_timeout))
        connection.emit = Mock()
        session = SessionStateMachine(connection)
        errors = []
        session.set_error_handler(errors.append)
        return connection, session, errors

    async def test_timeout_is_reported_and_session_keeps_waiting(self):
        connection, session, errors = self.make_session(0.01)
        session.submit_username('alice')
        await asyncio.sleep(0.05)

        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], ProtocolTimeoutError)
        self.assertEqual(errors[0].event, EventTypes.LOGGED_IN)
        self.assertIs(session.state, SessionState.SUBMITTING)

        # A late acknowledgement still completes the login
        connection.dispatch(EventTypes.LOGGED_IN, {})
        self.assertIs(session.state, SessionState.AUTHENTICATED)

    async def test_no_timeout_after_login(self):
        connection, session, errors = self.make_session(0.02)
        session.submit_username('alice')
        connection.dispatch(EventTypes.LOGGED_IN, {})
        await asyncio.sleep(0.05)
        self.assertEqual(errors, [])

    async def test_no_timer_by_default(self):
        connection, session, errors = self.make_session(None)
        session.submit_username('alice')
        await asyncio.sleep(0.02)
        self.assertEqual(errors, [])
        self.assertIs(session.state, SessionState.SUBMITTING)


if __name__ == '__main__':
    unittest.main()
