"""
ICS relay FastAPI server implementation.

Extends the base server with the authenticated calendar route. Each request
to ``/calendar.ics`` performs exactly one upstream download; nothing is
cached between requests.
"""

import hmac
import logging
from typing import Optional

from fastapi import Response
from fastapi.responses import PlainTextResponse

from .. import __version__
from ..config import RelaySettings
from ..fetcher import CalendarFetcher
from .base_server import BaseServer

logger = logging.getLogger(__name__)

CALENDAR_PATH = "/calendar.ics"
CALENDAR_MEDIA_TYPE = "text/calendar; charset=utf-8"
CALENDAR_HEADERS = {
    "Content-Disposition": 'attachment; filename="calendar.ics"',
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def token_matches(supplied: str, expected: str) -> bool:
    """Exact-match token comparison in constant time."""
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


class IcsRelayServer(BaseServer):
    """
    FastAPI server relaying the upstream calendar to token holders.

    The settings are frozen at construction; routes never consult the
    environment.
    """

    def __init__(
        self, settings: RelaySettings, fetcher: Optional[CalendarFetcher] = None
    ):
        """
        Initialize the relay server.

        Args:
            settings: Validated runtime settings
            fetcher: Upstream fetcher (built from settings when omitted)
        """
        super().__init__(
            title="ICS Relay",
            description="Authenticated relay for an upstream ICS calendar",
            version=__version__,
        )

        self.settings = settings
        self.fetcher = fetcher or CalendarFetcher.from_settings(settings)
        self._setup_relay_routes()

    def _setup_relay_routes(self):
        """Setup the calendar route."""

        # Sync endpoint: runs on the threadpool, one worker per request.
        @self.app.get(CALENDAR_PATH)
        def relay_calendar(token: Optional[str] = None):
            rejection = self._check_token(token)
            if rejection is not None:
                return rejection

            try:
                content = self.fetcher.fetch()
            except Exception as e:
                logger.error("Error handling calendar request: %s", e)
                return PlainTextResponse(
                    f"Internal Server Error: {e}", status_code=500
                )

            return Response(
                content=content,
                status_code=200,
                media_type=CALENDAR_MEDIA_TYPE,
                headers=CALENDAR_HEADERS,
            )

    def _check_token(self, token: Optional[str]) -> Optional[PlainTextResponse]:
        """Return a 401 response when the request is not authorised."""
        expected = self.settings.access_token
        if expected is None:
            return None

        if token is None:
            logger.warning("Rejected calendar request: token parameter missing")
            return PlainTextResponse(
                "Unauthorized: token parameter required", status_code=401
            )

        if not token_matches(token, expected):
            logger.warning("Rejected calendar request: invalid token")
            return PlainTextResponse("Unauthorized: Invalid token", status_code=401)

        return None

    def run(self) -> None:
        """Serve until interrupted, using the configured binding."""
        logger.info(
            "Calendar endpoint: http://%s:%d%s (auth %s)",
            self.settings.host,
            self.settings.port,
            CALENDAR_PATH,
            "enabled" if self.settings.auth_enabled else "disabled",
        )
        self.start(
            host=self.settings.host,
            port=self.settings.port,
            access_log=self.settings.access_log,
        )


def create_app(settings: RelaySettings, fetcher: Optional[CalendarFetcher] = None):
    """Build the FastAPI application for ``settings``."""
    return IcsRelayServer(settings, fetcher).app
