"""Parsing of GitHub Actions event payloads.

GitHub writes the full webhook payload for the triggering event to the
file named by GITHUB_EVENT_PATH. Only two fields matter here:

{
  "action": "synchronize",
  "number": 42,
  "pull_request": {"number": 42, ...}
}

Parsing never raises: a missing or malformed payload degrades to an event
with no action and no number, which reconciles as an open/update signal.
"""

import json
from pathlib import Path
from typing import Any, Optional

import structlog

from .models import EventKind, TriggerEvent

logger = structlog.get_logger(__name__)


def parse_trigger_event(event_name: str, payload: Any) -> TriggerEvent:
    """Build a TriggerEvent from the event name and decoded payload.

    Args:
        event_name: Value of GITHUB_EVENT_NAME.
        payload: Decoded JSON payload; anything other than a dict is ignored.

    Returns:
        TriggerEvent with kind, action and number filled in where valid.
    """
    kind = EventKind.from_event_name(event_name)

    if not isinstance(payload, dict):
        if payload is not None:
            logger.warning(
                "Ignoring event payload that is not an object",
                payload_type=type(payload).__name__,
            )
        return TriggerEvent(kind=kind)

    action = payload.get("action", "")
    if not isinstance(action, str):
        logger.warning("Ignoring non-string event action", action=repr(action))
        action = ""

    number = _extract_number(payload)
    return TriggerEvent(kind=kind, action=action, number=number)


def _extract_number(payload: dict) -> Optional[int]:
    """Return the pull request number, preferring the top-level field."""
    number = payload.get("number")
    if number is None:
        pull_request = payload.get("pull_request")
        if isinstance(pull_request, dict):
            number = pull_request.get("number")

    if number is None:
        return None
    # bool is an int subclass
    if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
        logger.warning("Ignoring invalid pull request number", number=repr(number))
        return None
    return number


def load_trigger_event(event_name: str, event_path: str) -> TriggerEvent:
    """Read the payload at event_path and parse it.

    Args:
        event_name: Value of GITHUB_EVENT_NAME.
        event_path: Value of GITHUB_EVENT_PATH; may be empty outside Actions.

    Returns:
        The parsed TriggerEvent.
    """
    if not event_path:
        logger.debug("No event payload path set", event_name=event_name)
        return parse_trigger_event(event_name, None)

    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except OSError as exc:
        logger.warning("Failed to read event payload", path=event_path, error=str(exc))
        payload = None
    except json.JSONDecodeError as exc:
        logger.warning("Event payload is not valid JSON", path=event_path, error=str(exc))
        payload = None

    return parse_trigger_event(event_name, payload)
