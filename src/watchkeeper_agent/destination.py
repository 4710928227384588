"""
Per-destination batch accumulator with size-triggered and debounced flushing.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Optional, Set

import httpx

from watchkeeper_common.errors import DeliveryFailure, InvalidDestination
from watchkeeper_common.logging import setup_logging
from watchkeeper_common.models import DeliveryOptions, DestinationConfig
from watchkeeper_common.settings import get_settings
from watchkeeper_agent.delivery import DeliveryOutcome, batch_url, deliver
from watchkeeper_agent.events import Event, as_events
from watchkeeper_agent.pools import SCHEMES, ClientPools, get_pools
from watchkeeper_agent.retry import RetryPredicate

log = setup_logging("watchkeeper.destination")

DEFAULT_MAX_ITEMS = 50
DEFAULT_FLUSH_INTERVAL_SECONDS = 1.0


def _validate_url(url: Any) -> str:
    if not isinstance(url, str) or not url.strip():
        raise InvalidDestination(f"{url!r} not valid.")
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InvalidDestination(f"{url} not valid: {e}") from e
    if parsed.scheme not in SCHEMES or not parsed.host:
        raise InvalidDestination(f"{url} not valid.")
    return url.rstrip("/")


class Destination:
    """
    Buffers events for one (target_url, cluster_id) pair and ships them in batches.

    A batch is flushed as soon as the buffer reaches `max_items`, or when the
    flush timer armed by the first buffered event expires. Flushing starts the
    delivery as a task and returns immediately; with `track_outcomes` each
    delivery task is kept in `outcomes` for the caller to drain.

    `ingest` and `flush` need a running event loop, or the `loop` passed here.
    """

    def __init__(
        self,
        target_url: str,
        cluster_id: str,
        max_items: int = DEFAULT_MAX_ITEMS,
        track_outcomes: bool = False,
        *,
        flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
        delivery: Optional[DeliveryOptions] = None,
        retry_on: Optional[RetryPredicate] = None,
        org_key: Optional[str] = None,
        pools: Optional[ClientPools] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if not isinstance(cluster_id, str) or not cluster_id:
            raise InvalidDestination("cluster_id must be defined")
        self.target_url = _validate_url(target_url)
        self.cluster_id = cluster_id

        if isinstance(max_items, bool) or not isinstance(max_items, int) or max_items < 1:
            raise InvalidDestination(f"max_items must be a positive integer, got {max_items!r}")
        if flush_interval_seconds <= 0:
            raise InvalidDestination("flush_interval_seconds must be > 0")

        self._max_items = max_items
        self._flush_interval = flush_interval_seconds
        self._track_outcomes = bool(track_outcomes)
        self._loop = loop

        self.delivery = delivery or DeliveryOptions()
        self.retry_on = retry_on
        self.org_key = org_key if org_key is not None else get_settings().org_key
        self.client = (pools or get_pools()).client_for(self.target_url)

        self._buffer: List[Event] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._outcomes: List["asyncio.Task[DeliveryOutcome]"] = []
        self._ledger_sizes: List[int] = []
        self._running: Set["asyncio.Task[DeliveryOutcome]"] = set()

        self.poll_started: Optional[datetime] = None
        if self._track_outcomes:
            self.poll_started = datetime.now(timezone.utc)

    @classmethod
    def from_config(
        cls,
        cfg: DestinationConfig,
        pools: Optional[ClientPools] = None,
        track_outcomes: Optional[bool] = None,
    ) -> "Destination":
        return cls(
            cfg.target_url,
            cfg.cluster_id,
            max_items=cfg.max_items,
            track_outcomes=cfg.track_outcomes if track_outcomes is None else track_outcomes,
            flush_interval_seconds=cfg.flush_interval_seconds,
            delivery=cfg.delivery,
            org_key=cfg.org_key,
            pools=pools,
        )

    @property
    def max_items(self) -> int:
        return self._max_items

    @property
    def track_outcomes(self) -> bool:
        return self._track_outcomes

    @property
    def outcomes(self) -> List["asyncio.Task[DeliveryOutcome]"]:
        """Pending delivery handles issued since this destination was created."""
        return list(self._outcomes)

    @property
    def buffered(self) -> List[Event]:
        return list(self._buffer)

    @property
    def pending(self) -> int:
        return len(self._buffer)

    @property
    def flush_armed(self) -> bool:
        return self._timer is not None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def ingest(self, payload: Any) -> None:
        """Queue one event or a list of events for delivery."""
        events = as_events(payload)
        loop = self._get_loop()

        for e in events:
            self._buffer.append(e)
            if len(self._buffer) >= self._max_items:
                self.flush()

        if self._buffer and self._timer is None:
            self._timer = loop.call_later(self._flush_interval, self.flush)

    def flush(self) -> None:
        """Detach the buffer as one batch and start delivering it."""
        loop = self._get_loop()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._buffer:
            return

        batch = self._buffer
        self._buffer = []

        task = loop.create_task(deliver(self, batch))
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        if self._track_outcomes:
            self._outcomes.append(task)
            self._ledger_sizes.append(len(batch))
        log.debug(
            f"flush cluster_id={self.cluster_id} batch={len(batch)} inflight={len(self._running)}"
        )

    async def drain(self) -> List[DeliveryOutcome]:
        """Wait for every ledgered delivery and return the outcomes in flush order."""
        handles = list(self._outcomes)
        sizes = list(self._ledger_sizes)
        if not handles:
            return []
        results = await asyncio.gather(*handles, return_exceptions=True)

        outcomes: List[DeliveryOutcome] = []
        for size, result in zip(sizes, results):
            if isinstance(result, BaseException):
                outcomes.append(self._abandoned_outcome(size, result))
            else:
                outcomes.append(result)
        return outcomes

    def _abandoned_outcome(self, size: int, error: BaseException) -> DeliveryOutcome:
        # cancelled (e.g. loop shutdown) before the delivery resolved
        url = batch_url(self, self.delivery.endpoint)
        failure = DeliveryFailure(
            f"POST {size} resource(s) to {url} abandoned: {type(error).__name__}"
        )
        failure.__cause__ = error
        log.error(f"post_abandoned count={size} url={url} error={error!r}")
        return DeliveryOutcome(url=url, batch_size=size, attempts=0, error=failure)

    async def aclose(self) -> None:
        """Flush what is buffered and wait for all deliveries still running."""
        self.flush()
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
