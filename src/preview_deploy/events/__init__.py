"""GitHub Actions trigger event handling.

This package turns the workflow's event name and the JSON payload at
GITHUB_EVENT_PATH into a TriggerEvent: the event kind plus, for pull
requests, the action (opened, synchronize, closed, ...) and number.
"""

from .handler import load_trigger_event, parse_trigger_event
from .models import EventKind, TriggerEvent

__all__ = [
    "EventKind",
    "TriggerEvent",
    "load_trigger_event",
    "parse_trigger_event",
]
