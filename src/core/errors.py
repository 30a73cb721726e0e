"""Error taxonomy for the relay."""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for relay errors."""


class ConfigurationError(RelayError):
    """Missing or malformed configuration; fatal at startup."""


class DestinationCallFailure(RelayError):
    """A call to the destination platform failed (network, auth, rate limit)."""

    def __init__(self, method: str, description: str, status_code: Optional[int] = None) -> None:
        self.method = method
        self.description = description
        self.status_code = status_code
        if status_code is None:
            super().__init__(f"{method} failed: {description}")
        else:
            super().__init__(f"{method} failed ({status_code}): {description}")
