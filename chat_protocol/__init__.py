"""
Shared protocol package for the chat sync client.

Contains event names, defaults and the message structures exchanged with
the chat server.
"""
