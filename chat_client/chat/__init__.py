"""
Chat module for client-side messaging functionality.

Handles:
- Sending chat messages
- Receiving broadcast messages
- Keeping the ordered transcript
"""
