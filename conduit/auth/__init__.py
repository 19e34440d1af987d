"""Authentication.

Callers authenticate with ``Authorization: Token <token>`` where the token is
an HS384-signed JWT minted at registration or login (see ``tokens``).
Passwords are hashed with bcrypt off the event loop (see ``passwords``).
The FastAPI guards that turn the header into a ``Principal`` live in
``dependencies``.
"""
