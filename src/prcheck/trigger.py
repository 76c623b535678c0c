# trigger.py
# Trigger evaluation: decides whether an incoming event starts a run.
# Pure functions, no side effects besides reading an event payload file.

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import TriggerRejected
from .model import Event, EventType, Job, Trigger, Workflow

# Activity types the platform runs `on: pull_request` for when no `types` are given.
DEFAULT_ACTIVITY_TYPES: Dict[EventType, Tuple[str, ...]] = {
    EventType.PULL_REQUEST: ("opened", "synchronize", "reopened"),
    EventType.PULL_REQUEST_TARGET: ("opened", "synchronize", "reopened"),
}


class EventDescriptor(BaseModel):
    """Wire shape of an incoming event descriptor."""
    type: EventType
    action: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_payload_alias(cls, data: Any) -> Any:
        # webhook-style descriptors carry the body under "payload"
        if isinstance(data, dict) and "metadata" not in data and "payload" in data:
            data = dict(data)
            data["metadata"] = data.pop("payload")
        if isinstance(data, dict) and data.get("action") is None:
            meta = data.get("metadata")
            if isinstance(meta, dict) and isinstance(meta.get("action"), str):
                data = dict(data)
                data["action"] = meta["action"]
        return data


@dataclass(frozen=True)
class TriggerDecision:
    should_run: bool
    jobs: Tuple[Job, ...]
    reason: str


def parse_event(descriptor: Any) -> Event:
    """
    Validate an event descriptor and build an Event.

    Raises:
        TriggerRejected: descriptor is not a mapping, has no/unknown type,
                         or carries malformed metadata.
    """
    if not isinstance(descriptor, Mapping):
        raise TriggerRejected(
            "event descriptor must be a mapping",
            got=type(descriptor).__name__,
        )
    try:
        parsed = EventDescriptor.model_validate(dict(descriptor))
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
        raise TriggerRejected(
            f"malformed event descriptor: {first.get('msg', 'invalid')}",
            field=where,
        ) from e

    return Event(type=parsed.type, action=parsed.action, metadata=parsed.metadata)


def load_event(event_name: str, event_path: str | Path | None = None) -> Event:
    """
    Build an Event from the platform convention: an event name
    (GITHUB_EVENT_NAME) plus a JSON payload file (GITHUB_EVENT_PATH).
    """
    payload: Any = {}
    if event_path:
        path = Path(event_path)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise TriggerRejected("event payload file not found", path=str(path)) from e
        except UnicodeDecodeError as e:
            raise TriggerRejected("event payload is not valid UTF-8", path=str(path), error=str(e)) from e
        except json.JSONDecodeError as e:
            raise TriggerRejected("event payload is not valid JSON", path=str(path), error=str(e)) from e
    return parse_event({"type": event_name, "payload": payload})


def trigger_matches(trigger: Trigger, event: Event) -> bool:
    if trigger.event is not event.type:
        return False

    types = trigger.types
    if types is None:
        types = DEFAULT_ACTIVITY_TYPES.get(trigger.event)
    if types is None:
        return True
    # events without an action (e.g. manual descriptors) pass the filter
    return event.action is None or event.action in types


def evaluate(workflow: Workflow, event: Event) -> TriggerDecision:
    """Decide whether `event` starts `workflow`, and which jobs to instantiate."""
    for trigger in workflow.on:
        if trigger_matches(trigger, event):
            action = f" ({event.action})" if event.action else ""
            return TriggerDecision(
                should_run=True,
                jobs=workflow.jobs,
                reason=f"matched on: {trigger.event.value}{action}",
            )

    declared: List[str] = [t.event.value for t in workflow.on]
    if any(t.event is event.type for t in workflow.on):
        reason = f"action {event.action!r} not in accepted activity types"
    else:
        reason = f"event {event.type.value!r} not in on: {declared}"
    return TriggerDecision(should_run=False, jobs=(), reason=reason)
