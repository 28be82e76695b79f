"""
Connection module for the persistent server connection.

Handles:
- Opening the websocket and the connect greeting
- Lifecycle state
- Dispatching named protocol events to registered handlers
- Sending protocol events
"""
