"""Exception types raised by crewdesk."""
from __future__ import annotations


class CrewDeskError(Exception):
    """Base class for every error crewdesk raises on purpose."""
    pass


class ConfigError(CrewDeskError):
    """Raised when a configuration file cannot be parsed."""
    pass


class ProviderUnavailable(CrewDeskError):
    """Raised when no reachable provider can serve a request."""
    pass


NoProviderAvailable = ProviderUnavailable


class MissingCredential(ProviderUnavailable):
    """Raised when a cloud provider is selected without a usable API key."""

    def __init__(self, provider: str, message: str | None = None) -> None:
        self.provider = provider
        super().__init__(message or f"No API key configured for {provider}")


class ProviderCallFailed(CrewDeskError):
    """Raised when a provider call exits non-zero or returns an unusable payload.

    The message is the underlying diagnostic (stderr, HTTP body, parse error)
    so callers can surface it verbatim.
    """

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(message)


class NoTasksPlanned(CrewDeskError):
    """Raised when a request produces no tasks to execute."""
    pass


class AllCouncilMembersFailed(CrewDeskError):
    """Raised when every council member failed in every round."""
    pass


AllMembersFailed = AllCouncilMembersFailed


class CacheIoFailed(CrewDeskError):
    """Raised inside the response cache on unreadable entries; never escapes it."""
    pass
