"""
Web server module for the ICS relay.

FastAPI-based HTTP surface: the generic BaseServer provides health checks
and plaintext error handling, IcsRelayServer adds the calendar route.
"""

from .base_server import BaseServer
from .relay_server import IcsRelayServer, create_app

__all__ = [
    "BaseServer",
    "IcsRelayServer",
    "create_app",
]
