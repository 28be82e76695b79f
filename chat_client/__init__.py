"""
Client package for the chat sync client.

This package contains all client-side functionality including:
- Connection management
- Login session handling
- Online users roster
- Chat transcript
- User interface
- Configuration and utilities
"""
