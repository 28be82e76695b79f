"""
Session module for the login handshake.

Handles:
- Submitting the username
- Waiting for the login acknowledgement
- Arming post-login listeners
"""
