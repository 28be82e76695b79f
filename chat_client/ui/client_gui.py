#!/usr/bin/env python3
"""
Client GUI - PyQt6 Presentation Shell

Renders client snapshots and forwards the two user intents.
Features:
- Username field, locked once submitted
- Message list in arrival order
- Message input, enabled only after login
- Connected users list
- Status line for connection state and errors
"""

import asyncio
import sys
import threading
from typing import Optional

from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel,
    QLineEdit, QListWidget
)
from PyQt6.QtCore import QThread, pyqtSignal

from chat_client.exceptions import ChatClientError, TransportError
from chat_client.main_client import ChatSyncClient, ClientSnapshot
from chat_client.utils.config import ClientConfig
from chat_client.utils.logger import logger


# ============================================================================
# WIDGETS
# ============================================================================

class ChatWidget(QWidget):
    """Message list with the message input below it."""

    message_sent = pyqtSignal(str)  # message text

    def __init__(self):
        super().__init__()
        self._rendered_count = 0
        self.setup_ui()

    def setup_ui(self):
        """Setup chat interface UI."""
        layout = QVBoxLayout()
        layout.setSpacing(5)
        layout.setContentsMargins(5, 5, 5, 5)

        self.messages_list = QListWidget()
        self.messages_list.setStyleSheet("""
            QListWidget {
                background-color: #2C2C2C;
                color: #ECF0F1;
                border: 1px solid #34495E;
                border-radius: 5px;
                padding: 5px;
                font-size: 10pt;
            }
        """)
        layout.addWidget(self.messages_list, stretch=1)

        self.input_field = QLineEdit()
        self.input_field.setPlaceholderText("What's your message?")
        self.input_field.setEnabled(False)
        self.input_field.returnPressed.connect(self.send_message)
        layout.addWidget(self.input_field)

        self.setLayout(layout)

    def send_message(self):
        """Send chat message."""
        text = self.input_field.text().strip()
        if text:
            self.message_sent.emit(text)
            self.input_field.clear()

    def render_messages(self, messages):
        """Append messages not shown yet; the transcript only ever grows."""
        for message in messages[self._rendered_count:]:
            self.messages_list.addItem(f"{message.sender}: {message.text}")
        self._rendered_count = len(messages)
        self.messages_list.scrollToBottom()


class OnlineUsersPanel(QWidget):
    """Connected users column."""

    def __init__(self):
        super().__init__()
        self.setup_ui()

    def setup_ui(self):
        layout = QVBoxLayout()
        layout.setContentsMargins(5, 5, 5, 5)

        title = QLabel("Connected users:")
        title.setStyleSheet("font-weight: bold;")
        layout.addWidget(title)

        self.users_list = QListWidget()
        layout.addWidget(self.users_list)

        self.setLayout(layout)

    def render_users(self, users, own_id: Optional[str] = None):
        """Replace the list with the latest roster snapshot."""
        self.users_list.clear()
        for user in users:
            label = user.username
            if own_id is not None and user.id == own_id:
                label += " (you)"
            self.users_list.addItem(label)


# ============================================================================
# MAIN WINDOW
# ============================================================================

class ClientMainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, config: Optional[ClientConfig] = None):
        super().__init__()
        self.config = config or ClientConfig()
        self.network_thread: Optional['NetworkThread'] = None
        self.last_snapshot: Optional[ClientSnapshot] = None

        self.setup_ui()
        self.setup_connections()

    def setup_ui(self):
        """Setup the main window UI."""
        self.setWindowTitle("Chat Client")
        self.setGeometry(100, 100, 1000, 700)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        main_layout = QHBoxLayout()
        main_layout.setContentsMargins(10, 10, 10, 10)

        # Main column: username, messages, message input
        main_column = QVBoxLayout()

        self.status_label = QLabel("Disconnected")
        main_column.addWidget(self.status_label)

        self.username_input = QLineEdit()
        self.username_input.setPlaceholderText("Insert here your username")
        main_column.addWidget(self.username_input)

        self.chat_widget = ChatWidget()
        main_column.addWidget(self.chat_widget, stretch=1)

        main_layout.addLayout(main_column, stretch=5)

        # Connected clients column
        self.users_panel = OnlineUsersPanel()
        main_layout.addWidget(self.users_panel, stretch=1)

        central_widget.setLayout(main_layout)

        self.apply_dark_theme()

    def setup_connections(self):
        """Setup signal-slot connections."""
        self.username_input.returnPressed.connect(self.on_submit_username)
        self.chat_widget.message_sent.connect(self.on_send_message)

    def apply_dark_theme(self):
        """Apply dark theme styling."""
        self.setStyleSheet("""
            QMainWindow {
                background-color: #1A1A1A;
            }
            QWidget {
                background-color: #1A1A1A;
                color: #ECF0F1;
            }
        """)

    # ========================================================================
    # CONNECTION & NETWORKING
    # ========================================================================

    def connect_to_server(self):
        """Start the network thread."""
        self.status_label.setText(f"Connecting to {self.config.address}...")
        self.network_thread = NetworkThread(self.config)
        self.network_thread.snapshot_changed.connect(self.render)
        self.network_thread.connected.connect(self.on_connected)
        self.network_thread.disconnected.connect(self.on_disconnected)
        self.network_thread.error_raised.connect(self.on_error)
        self.network_thread.start()

    def on_connected(self):
        self.setWindowTitle("Chat Client (Connected)")

    def on_disconnected(self):
        self.setWindowTitle("Chat Client (Disconnected)")
        self.chat_widget.input_field.setEnabled(False)

    def on_error(self, message: str):
        self.status_label.setText(f"Error: {message}")

    def on_submit_username(self):
        username = self.username_input.text().strip()
        if username and self.network_thread:
            self.network_thread.submit_username(username)

    def on_send_message(self, text: str):
        if self.network_thread:
            self.network_thread.send_chat(text)

    # ========================================================================
    # RENDERING
    # ========================================================================

    def render(self, snapshot: ClientSnapshot):
        """Derive every widget state from a snapshot."""
        self.last_snapshot = snapshot

        self.username_input.setDisabled(snapshot.username_locked)
        if snapshot.username_locked and snapshot.username:
            self.username_input.setText(snapshot.username)

        self.chat_widget.input_field.setEnabled(snapshot.can_send_messages)
        self.chat_widget.render_messages(snapshot.messages)
        self.users_panel.render_users(snapshot.users, snapshot.connection_id)

        self.status_label.setText(self.describe_status(snapshot))

    @staticmethod
    def describe_status(snapshot: ClientSnapshot) -> str:
        if snapshot.is_offline:
            if snapshot.last_error is not None:
                return f"Offline: {snapshot.last_error}"
            return "Offline"
        status = snapshot.connection_state.value.capitalize()
        if snapshot.username:
            status += f" as {snapshot.username} ({snapshot.session_state.value})"
        if snapshot.last_error is not None:
            status += f" - {snapshot.last_error}"
        return status

    def closeEvent(self, event):
        """Stop the network thread before closing."""
        if self.network_thread is not None:
            self.network_thread.stop()
            self.network_thread.wait(5000)
        event.accept()


# ============================================================================
# NETWORK THREAD
# ============================================================================

class NetworkThread(QThread):
    """Thread running the client's event loop."""

    snapshot_changed = pyqtSignal(object)
    connected = pyqtSignal()
    disconnected = pyqtSignal()
    error_raised = pyqtSignal(str)

    def __init__(self, config: ClientConfig):
        super().__init__()
        self.config = config
        self.client: Optional[ChatSyncClient] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.loop_ready = threading.Event()
        self._stop_event: Optional[asyncio.Event] = None

    def run(self):
        """Run network loop."""
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._connect_and_listen())
        finally:
            self.loop.close()

    async def _connect_and_listen(self):
        """Connect to server and stay until the connection ends or stop() is called."""
        self._stop_event = asyncio.Event()
        self.client = ChatSyncClient(self.config)
        self.client.add_snapshot_handler(self.snapshot_changed.emit)
        self.loop_ready.set()

        try:
            await self.client.start()
        except TransportError as e:
            self.error_raised.emit(str(e))
            await self.client.connection.close()
            self.disconnected.emit()
            return

        self.connected.emit()
        closed = asyncio.ensure_future(self.client.connection.wait_closed())
        stopped = asyncio.ensure_future(self._stop_event.wait())
        await asyncio.wait({closed, stopped}, return_when=asyncio.FIRST_COMPLETED)
        stopped.cancel()

        if self._stop_event.is_set():
            await self.client.close()
        else:
            # Dropped by the server: keep the session as it was, release the HTTP session
            await self.client.connection.close()
        await closed
        self.disconnected.emit()

    def _call_in_loop(self, func, *args):
        if not self.loop_ready.wait(timeout=5.0):
            logger.warning("[NETWORK] Event loop not ready, intent dropped")
            return
        self.loop.call_soon_threadsafe(self._invoke, func, *args)

    def _invoke(self, func, *args):
        try:
            func(*args)
        except ChatClientError as e:
            logger.warning(f"[NETWORK] {e}")
            self.error_raised.emit(str(e))

    def submit_username(self, username: str):
        """Forward the submit-username intent from the GUI thread."""
        self._call_in_loop(lambda name: self.client.submit_username(name), username)

    def send_chat(self, text: str):
        """Forward the send-message intent from the GUI thread."""
        self._call_in_loop(lambda body: self.client.send_message(body), text)

    def stop(self):
        """Stop network thread."""
        if self.loop is not None and self._stop_event is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._stop_event.set)


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main(config: Optional[ClientConfig] = None):
    """Main entry point."""
    app = QApplication(sys.argv)

    window = ClientMainWindow(config or ClientConfig.from_env())
    window.show()
    window.connect_to_server()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
