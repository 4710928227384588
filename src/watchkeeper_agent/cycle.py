from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from watchkeeper_common.logging import setup_logging
from watchkeeper_common.models import DestinationConfig
from watchkeeper_agent.delivery import DeliveryOutcome
from watchkeeper_agent.destination import Destination
from watchkeeper_agent.pools import ClientPools

log = setup_logging("watchkeeper.cycle")


@dataclass(frozen=True)
class CycleReport:
    started: datetime
    outcomes: List[DeliveryOutcome]

    @property
    def batches(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return self.batches - self.succeeded

    @property
    def events(self) -> int:
        return sum(o.batch_size for o in self.outcomes)

    @property
    def success(self) -> bool:
        return self.failed == 0


class PollCycle:
    """
    One polling cycle: a fresh tracked destination whose ledger is drained at
    the end to decide whether everything sent during the cycle was delivered.
    """

    def __init__(self, destination: Destination) -> None:
        if not destination.track_outcomes:
            raise ValueError("poll cycle needs a destination with track_outcomes=True")
        self.destination = destination

    @classmethod
    def create(cls, target_url: str, cluster_id: str, **options: Any) -> "PollCycle":
        options["track_outcomes"] = True
        return cls(Destination(target_url, cluster_id, **options))

    @classmethod
    def from_config(
        cls, cfg: DestinationConfig, pools: Optional[ClientPools] = None
    ) -> "PollCycle":
        return cls(Destination.from_config(cfg, pools=pools, track_outcomes=True))

    @property
    def started(self) -> datetime:
        assert self.destination.poll_started is not None
        return self.destination.poll_started

    def ingest(self, payload: Any) -> None:
        self.destination.ingest(payload)

    async def finish(self) -> CycleReport:
        self.destination.flush()
        report = CycleReport(started=self.started, outcomes=await self.destination.drain())
        line = (
            f"cycle_finished cluster_id={self.destination.cluster_id} "
            f"batches={report.batches} succeeded={report.succeeded} "
            f"failed={report.failed} events={report.events}"
        )
        if report.success:
            log.info(line)
        else:
            log.error(line)
        return report
