"""Exception hierarchy for the ICS relay."""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay operations."""

    pass


class ConfigurationError(RelayError):
    """Startup configuration is missing or invalid."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class UpstreamFetchError(RelayError):
    """The upstream calendar could not be retrieved."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
