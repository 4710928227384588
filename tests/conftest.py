from __future__ import annotations

import json
import time
from typing import Callable, List, Optional, Union

import httpx
import pytest

from watchkeeper_agent.destination import Destination
from watchkeeper_agent.pools import ClientPools
from watchkeeper_common.models import DeliveryOptions

Reply = Union[int, Exception, Callable[[httpx.Request], httpx.Response]]

TARGET_URL = "https://collector.test/api/v2"
CLUSTER_ID = "cluster-1"


class FakeCollector:
    """Records every request and answers from a script of status codes/errors."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.times: List[float] = []
        self.replies: List[Reply] = []
        self.default: Reply = 200

    def reply(self, *replies: Reply) -> "FakeCollector":
        self.replies.extend(replies)
        return self

    def always(self, reply: Reply) -> "FakeCollector":
        self.default = reply
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.times.append(time.monotonic())
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return httpx.Response(reply, json={"ok": 200 <= reply < 300})

    @property
    def bodies(self) -> List[list]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def pools(collector: FakeCollector) -> ClientPools:
    return ClientPools(timeout_seconds=5.0, transport=httpx.MockTransport(collector.handler))


@pytest.fixture
def make_destination(pools: ClientPools):
    def _make(
        target_url: str = TARGET_URL,
        cluster_id: str = CLUSTER_ID,
        max_items: int = 50,
        track_outcomes: bool = False,
        flush_interval_seconds: float = 1.0,
        delivery: Optional[DeliveryOptions] = None,
        **kwargs,
    ) -> Destination:
        org_key = kwargs.pop("org_key", "org-key-123")
        return Destination(
            target_url,
            cluster_id,
            max_items=max_items,
            track_outcomes=track_outcomes,
            flush_interval_seconds=flush_interval_seconds,
            delivery=delivery or DeliveryOptions(retry_delay_seconds=0.0),
            org_key=org_key,
            pools=pools,
            **kwargs,
        )

    return _make


def resource(name: str, kind: str = "ConfigMap", self_link: Optional[str] = None) -> dict:
    obj: dict = {"kind": kind, "metadata": {"name": name}}
    if self_link is not None:
        obj["metadata"]["annotations"] = {"selfLink": self_link}
    return {"type": "MODIFIED", "object": obj}
