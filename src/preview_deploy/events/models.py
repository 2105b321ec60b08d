"""Trigger event models.

The models use Pydantic for validation, consistent with the remote
platform records in preview_deploy/remote/models.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

CLOSED_ACTION = "closed"


class EventKind(str, Enum):
    """Workflow trigger kinds the reconciler distinguishes.

    Attributes:
        PULL_REQUEST: A pull_request event from the head repository.
        PULL_REQUEST_TARGET: A pull_request_target event (runs in base context).
        PUSH: A push to a branch.
        WORKFLOW_DISPATCH: A manual run.
        OTHER: Any other event; treated as an open/update signal.
    """

    PULL_REQUEST = "pull_request"
    PULL_REQUEST_TARGET = "pull_request_target"
    PUSH = "push"
    WORKFLOW_DISPATCH = "workflow_dispatch"
    OTHER = "other"

    @classmethod
    def from_event_name(cls, event_name: str) -> "EventKind":
        try:
            return cls(event_name)
        except ValueError:
            return cls.OTHER


class TriggerEvent(BaseModel):
    """The triggering event, reduced to what reconciliation needs.

    Attributes:
        kind: Which workflow event fired.
        action: Pull request action (e.g. "opened", "closed"); may be empty.
        number: Pull request number, when the payload carries one.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind = Field(
        EventKind.OTHER,
        description="The workflow event that triggered this run",
    )

    action: str = Field(
        default="",
        description="Pull request action from the event payload",
    )

    number: Optional[int] = Field(
        default=None,
        gt=0,
        description="Pull request number (positive integer) when present",
    )

    @property
    def is_pull_request(self) -> bool:
        return self.kind in (EventKind.PULL_REQUEST, EventKind.PULL_REQUEST_TARGET)

    @property
    def is_closure(self) -> bool:
        """True when the event closes the pull request the workspace belongs to."""
        return self.is_pull_request and self.action == CLOSED_ACTION
