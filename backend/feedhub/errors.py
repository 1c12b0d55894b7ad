"""Exception hierarchy for feedhub."""

from __future__ import annotations


class FeedError(Exception):
    """Base class for all feedhub errors."""


class TransportError(FeedError):
    """An upstream fetch or stream failed (network, decoding, auth)."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ManagerShutdownError(FeedError, RuntimeError):
    """A manager was used after shutdown()."""
