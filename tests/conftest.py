from pathlib import Path
import sys
from unittest.mock import Mock

import pytest

# Add only the src directory to path, not the project root
project_root = Path(__file__).parent.parent
src_path = str(project_root / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from ics_relay.config import RelaySettings  # noqa: E402

UPSTREAM_URL = "https://example.test/cal.ics"
ACCESS_TOKEN = "secret123"
CALENDAR_BODY = b"BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Test//EN\nEND:VCALENDAR\n"


def make_upstream_response(status_code=200, content=CALENDAR_BODY, reason=None):
    """Build a stand-in for ``requests.Response``."""
    mock = Mock()
    mock.status_code = status_code
    mock.reason = reason or ("OK" if status_code < 300 else "Internal Server Error")
    mock.content = content
    mock.text = content.decode("utf-8", errors="replace")
    return mock


@pytest.fixture
def settings():
    """Settings for an authenticated relay."""
    return RelaySettings(ics_url=UPSTREAM_URL, access_token=ACCESS_TOKEN)


@pytest.fixture
def open_settings():
    """Settings for the unauthenticated variant."""
    return RelaySettings(ics_url=UPSTREAM_URL, access_token=None)
