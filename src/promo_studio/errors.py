from __future__ import annotations

from typing import Any


class ProviderError(Exception):
    """An external API call failed or returned something unusable."""

    def __init__(self, message: str, status_code: int = 502, raw: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw = raw


class NotConfiguredError(Exception):
    """A key or endpoint needed for an external call is not set."""
