"""
ICS Relay - authenticated pass-through for calendar feeds.

Fetches an upstream ICS calendar while presenting a desktop browser
identity and re-serves it to clients holding the shared access token.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ics_relay")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "0.0.0-dev"

__all__ = [
    "__version__",
]
