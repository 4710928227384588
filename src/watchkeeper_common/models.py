from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class DeliveryOptions(BaseModel):
    """Per-call delivery options: collector endpoint and retry bounds."""

    endpoint: str = "resources"
    max_attempts: int = Field(5, ge=1)
    retry_delay_seconds: float = Field(3.0, ge=0)


class DestinationConfig(BaseModel):
    """Destination block of an agent YAML config."""

    target_url: str
    cluster_id: str
    max_items: int = Field(50, ge=1)
    track_outcomes: bool = False
    flush_interval_seconds: float = Field(1.0, gt=0)
    delivery: DeliveryOptions = Field(default_factory=DeliveryOptions)
    org_key: Optional[str] = None
