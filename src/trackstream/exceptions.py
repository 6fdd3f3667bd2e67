"""Custom exception hierarchy for trackstream."""

from __future__ import annotations


class TrackstreamError(Exception):
    """Base exception for all trackstream errors."""


class ConstructionError(TrackstreamError):
    """Invalid static configuration (waypoint graph, track path).

    Fatal at startup: the process must not proceed.
    """


class ConfigError(ConstructionError):
    """Invalid or missing runtime configuration."""


class TransportError(TrackstreamError):
    """Messaging transport could not be initialized or a send failed."""

    def __init__(
        self,
        message: str,
        *,
        channel: str = "",
        rc: int | None = None,
    ) -> None:
        self.channel = channel
        self.rc = rc
        super().__init__(message)


class ParseError(TrackstreamError):
    """Malformed inbound position payload.

    Recovered locally by the aggregator: the message is dropped and
    state is left unchanged.
    """

    def __init__(self, message: str, *, payload: str | bytes = "") -> None:
        self.payload = payload
        super().__init__(message)
