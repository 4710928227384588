from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from watchkeeper_common.models import DeliveryOptions

RetryPredicate = Callable[[Optional[httpx.Response], Optional[BaseException]], bool]


def http_or_network_error(
    response: Optional[httpx.Response], error: Optional[BaseException]
) -> bool:
    """Retry on transport-level failures and 5xx responses."""
    if error is not None:
        return isinstance(error, httpx.TransportError)
    return response is not None and response.status_code >= 500


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    retry_delay_seconds: float = 3.0
    retry_on: RetryPredicate = http_or_network_error

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError("max_attempts must be an integer")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be >= 0")

    @classmethod
    def from_options(
        cls, options: DeliveryOptions, retry_on: Optional[RetryPredicate] = None
    ) -> "RetryPolicy":
        return cls(
            max_attempts=options.max_attempts,
            retry_delay_seconds=options.retry_delay_seconds,
            retry_on=retry_on or http_or_network_error,
        )

    def should_retry(
        self,
        attempt: int,
        response: Optional[httpx.Response],
        error: Optional[BaseException],
    ) -> bool:
        # attempt is 1-based
        if attempt >= self.max_attempts:
            return False
        return self.retry_on(response, error)

    async def sleep(self) -> None:
        await asyncio.sleep(self.retry_delay_seconds)
