from __future__ import annotations

from typing import Optional


class InvalidDestination(ValueError):
    """Raised when a destination is built from a bad URL, cluster id or batch size."""


class UnsupportedPayload(TypeError):
    """Raised by ingest when an item is not a plain keyed record."""


class DeliveryFailure(Exception):
    """
    Terminal failure of one batch delivery.

    Never raised past the delivery client; it is stored on the failed
    outcome so callers draining the ledger can inspect it.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts
