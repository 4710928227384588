"""
Agent config files: YAML on disk, validated into a `DestinationConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

import yaml

from watchkeeper_common.models import DestinationConfig

DESTINATION_KEY = "destination"


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{p}: YAML root must be a mapping")
    return data


def load_destination_config(path: Union[str, Path]) -> DestinationConfig:
    """
    Read the destination settings from an agent config file.

    Accepts either a top-level `destination:` block or a flat mapping of the
    destination fields. Raises `FileNotFoundError`, or `ValueError` (pydantic's
    `ValidationError` included) for malformed content.
    """
    cfg = load_yaml(path)
    block = cfg.get(DESTINATION_KEY, cfg)
    if not isinstance(block, dict):
        raise ValueError(f"{path}: '{DESTINATION_KEY}' must be a mapping")
    return DestinationConfig.model_validate(block)
