"""
Roster module for the online users view.

Handles:
- Fetching the online users snapshot
- Refetching on server change notifications
"""
