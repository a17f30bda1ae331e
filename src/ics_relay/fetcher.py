"""
Upstream calendar fetcher.

Some calendar hosts answer anything that does not look like a browser with
HTTP 500, so every request presents a desktop Chrome identity.
"""

import logging
from typing import Optional

import requests

from .config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, RelaySettings
from .exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

ICS_MARKER = b"BEGIN:VCALENDAR"
ERROR_EXCERPT_LENGTH = 200


class CalendarFetcher:
    """Performs a single, un-retried download of the upstream calendar."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.url = url
        self.timeout = timeout
        self.user_agent = user_agent

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "CalendarFetcher":
        return cls(
            settings.ics_url,
            timeout=settings.upstream_timeout,
            user_agent=settings.user_agent,
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/calendar,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    def fetch(self) -> bytes:
        """
        Download the calendar.

        Returns:
            The upstream body, byte for byte.

        Raises:
            UpstreamFetchError: on network failure, a non-2xx status or a
                failed body read.
        """
        logger.info("Downloading ICS file from upstream")
        logger.debug("Upstream URL: %s", self.url)

        try:
            response = requests.get(
                self.url, headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise UpstreamFetchError(f"Upstream request failed: {e}") from e

        logger.info(
            "Upstream response status: %s %s", response.status_code, response.reason
        )

        if not 200 <= response.status_code < 300:
            excerpt = _read_error_excerpt(response)
            raise UpstreamFetchError(
                f"HTTP error! status: {response.status_code} - {response.reason}\n"
                f"Response body: {excerpt}...",
                status_code=response.status_code,
            )

        try:
            content = response.content
        except requests.RequestException as e:
            raise UpstreamFetchError(f"Failed to read upstream body: {e}") from e

        if ICS_MARKER not in content:
            logger.warning("Response does not appear to be valid ICS format")

        logger.info("Successfully downloaded ICS file (%d bytes)", len(content))
        return content


def _read_error_excerpt(response: requests.Response) -> str:
    """Best-effort read of an error body, truncated for the error message."""
    try:
        text: Optional[str] = response.text
    except (requests.RequestException, UnicodeDecodeError, LookupError) as e:
        logger.debug("Could not read upstream error body: %s", e)
        text = None
    if text is None:
        return "Unable to read error response"
    return text[:ERROR_EXCERPT_LENGTH]


def download_calendar(settings: RelaySettings) -> bytes:
    """Convenience wrapper: fetch the calendar described by ``settings``."""
    return CalendarFetcher.from_settings(settings).fetch()
