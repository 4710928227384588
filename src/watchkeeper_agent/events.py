from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

from watchkeeper_common.errors import UnsupportedPayload

Event = Dict[str, Any]

REMOTE_RESOURCE_KIND = "RemoteResource"
NO_SELF_LINK = "no-selfLink"

KIND_PATH = ("object", "kind")
SELF_LINK_PATH = ("object", "metadata", "annotations", "selfLink")


def as_events(payload: Any) -> List[Event]:
    """
    Normalize one record or a list/tuple of records into a list of events.

    Every item is checked before anything is returned, so a bad item never
    leaves a caller's buffer half-extended.
    """
    items = list(payload) if isinstance(payload, (list, tuple)) else [payload]
    for item in items:
        if type(item) is not dict:
            raise UnsupportedPayload(f"Type {type(item).__name__} not supported.")
    return items


def get_path(record: Any, path: Sequence[str], default: Any = None) -> Any:
    cur = record
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def classified_ids(
    events: Iterable[Event],
    kind: str = REMOTE_RESOURCE_KIND,
    kind_path: Sequence[str] = KIND_PATH,
    id_path: Sequence[str] = SELF_LINK_PATH,
    missing: str = NO_SELF_LINK,
) -> List[str]:
    """Return the identifier of every event whose classified kind is `kind`."""
    return [
        str(get_path(e, id_path, missing))
        for e in events
        if get_path(e, kind_path, "") == kind
    ]
