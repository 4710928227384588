"""
Delivery of one batch to the collector with bounded retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import httpx

from watchkeeper_common.errors import DeliveryFailure
from watchkeeper_common.logging import setup_logging
from watchkeeper_common.models import DeliveryOptions
from watchkeeper_agent.events import Event, classified_ids
from watchkeeper_agent.retry import RetryPolicy

if TYPE_CHECKING:
    from watchkeeper_agent.destination import Destination

log = setup_logging("watchkeeper.delivery")

ORG_KEY_HEADER = "razee-org-key"
POLL_CYCLE_HEADER = "poll-cycle"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of the attempt sequence for one batch."""

    url: str
    batch_size: int
    attempts: int
    response: Optional[httpx.Response] = None
    error: Optional[DeliveryFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> Optional[int]:
        if self.response is None:
            return None
        return self.response.status_code


def batch_url(destination: "Destination", endpoint: Optional[str] = None) -> str:
    return f"{destination.target_url}/clusters/{destination.cluster_id}/{endpoint or 'resources'}"


async def deliver(
    destination: "Destination",
    batch: List[Event],
    options: Optional[DeliveryOptions] = None,
) -> DeliveryOutcome:
    """
    POST `batch` as a JSON array to the destination's collector.

    Never raises for delivery problems: network errors, exhausted retries and
    non-2xx responses all resolve to a failed `DeliveryOutcome`.
    """
    opts = options or destination.delivery
    policy = RetryPolicy.from_options(opts, retry_on=destination.retry_on)
    url = batch_url(destination, opts.endpoint)
    count = len(batch)

    remote = classified_ids(batch)
    log.info(
        f"post_started count={count} url={url} remote_resources={', '.join(remote)}"
    )

    headers = {ORG_KEY_HEADER: destination.org_key}
    if destination.poll_started is not None:
        headers[POLL_CYCLE_HEADER] = destination.poll_started.isoformat()

    response: Optional[httpx.Response] = None
    error: Optional[BaseException] = None
    attempt = 0
    while True:
        attempt += 1
        response, error = None, None
        try:
            response = await destination.client.post(url, json=batch, headers=headers)
        except Exception as e:
            error = e

        if not policy.should_retry(attempt, response, error):
            break

        reason = f"status={response.status_code}" if response is not None else repr(error)
        log.warning(
            f"post_retry attempt={attempt}/{policy.max_attempts} url={url} {reason}"
        )
        await policy.sleep()

    if error is not None:
        failure = DeliveryFailure(
            f"POST {count} resource(s) to {url} failed: {type(error).__name__}: {error}",
            attempts=attempt,
        )
        failure.__cause__ = error
        log.error(f"post_failed count={count} url={url} attempts={attempt} error={error!r}")
        return DeliveryOutcome(url=url, batch_size=count, attempts=attempt, error=failure)

    assert response is not None
    status = response.status_code
    if 200 <= status < 300:
        log.info(f"post_succeeded count={count} url={url} status={status}")
        return DeliveryOutcome(
            url=url, batch_size=count, attempts=attempt, response=response
        )

    log.error(
        f"post_failed count={count} url={url} attempts={attempt} status={status}"
    )
    failure = DeliveryFailure(
        f"POST {count} resource(s) to {url} failed with status {status}",
        status_code=status,
        attempts=attempt,
    )
    return DeliveryOutcome(
        url=url, batch_size=count, attempts=attempt, response=response, error=failure
    )
