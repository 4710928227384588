from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import ValidationError

from watchkeeper_common.config import load_destination_config
from watchkeeper_common.errors import InvalidDestination, UnsupportedPayload
from watchkeeper_common.logging import setup_logging
from watchkeeper_common.models import DestinationConfig
from watchkeeper_common.settings import get_settings
from watchkeeper_agent.cycle import CycleReport, PollCycle
from watchkeeper_agent.destination import Destination
from watchkeeper_agent.pools import get_pools

app = typer.Typer(help="Watchkeeper Agent CLI", no_args_is_help=True)

_LOGGERS = (
    "watchkeeper.cycle",
    "watchkeeper.delivery",
    "watchkeeper.destination",
)


@app.callback()
def main() -> None:
    level = get_settings().log_level
    for name in _LOGGERS:
        setup_logging(name, level)


def _load_config(path: Path) -> DestinationConfig:
    try:
        return load_destination_config(path)
    except ValidationError as e:
        raise typer.BadParameter(f"invalid destination config: {e}")
    except (FileNotFoundError, ValueError) as e:
        raise typer.BadParameter(str(e))


def _read_events(path: Path) -> List[Any]:
    """Read a JSON document (object or array) or JSON lines."""
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = [json.loads(line) for line in text.splitlines() if line.strip()]
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"{path}: not JSON or JSON lines: {e}")
    return data if isinstance(data, list) else [data]


async def _ship(cfg: DestinationConfig, events: List[Any]) -> CycleReport:
    pools = get_pools()
    try:
        cycle = PollCycle.from_config(cfg, pools=pools)
        cycle.ingest(events)
        return await cycle.finish()
    finally:
        await pools.aclose()


@app.command("send")
def send(
    files: List[Path] = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON or JSONL files of events"
    ),
    config: Path = typer.Option(..., "--config", "-c", help="Agent YAML config file"),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", help="Collector endpoint under /clusters/{id}/"
    ),
) -> None:
    """
    Ship events from files to the configured collector as one poll cycle.
    Exits with code 1 when any batch fails.
    """
    cfg = _load_config(config)
    if endpoint:
        cfg = cfg.model_copy(
            update={"delivery": cfg.delivery.model_copy(update={"endpoint": endpoint})}
        )

    events: List[Any] = []
    for f in files:
        events.extend(_read_events(f))

    try:
        report = asyncio.run(_ship(cfg, events))
    except (InvalidDestination, UnsupportedPayload) as e:
        raise typer.BadParameter(str(e))

    typer.echo(
        f"batches={report.batches} succeeded={report.succeeded} "
        f"failed={report.failed} events={report.events}"
    )
    if not report.success:
        raise typer.Exit(code=1)


@app.command("validate-config")
def validate_config(
    config: Path = typer.Option(..., "--config", "-c", help="Agent YAML config file"),
) -> None:
    """
    Validate the destination config and build a destination without sending.
    """
    cfg = _load_config(config)
    try:
        dest = Destination.from_config(cfg)
    except InvalidDestination as e:
        raise typer.BadParameter(str(e))

    typer.echo(
        f"ok: target_url={dest.target_url} cluster_id={dest.cluster_id} "
        f"max_items={dest.max_items}"
    )


if __name__ == "__main__":
    app()
