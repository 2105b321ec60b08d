"""Codesphere API records.

Structured views of the JSON the workspace platform returns and accepts.
Field names follow Python conventions; the camelCase wire names are
declared as aliases so responses validate directly.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Workspace(_ApiModel):
    """A remote workspace.

    Attributes:
        id: Platform-assigned numeric id; immutable once created.
        name: Workspace name, the lookup key computed by the identity resolver.
        team_id: Owning team.
        dev_domain: Public development domain, when the platform reports one.
    """

    id: int
    name: str
    team_id: Optional[int] = Field(default=None, alias="teamId")
    dev_domain: Optional[str] = Field(default=None, alias="devDomain")


class WorkspaceStatus(_ApiModel):
    is_running: bool = Field(alias="isRunning")

    @property
    def running(self) -> bool:
        return self.is_running


class ReplicaState(str, Enum):
    """State of one replica of a pipeline stage.

    WAITING, RUNNING and UNKNOWN are non-terminal. FAILURE and ABORTED are
    terminal failures; SUCCESS is terminal success.
    """

    WAITING = "waiting"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "ReplicaState":
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return cls.UNKNOWN


FAILED_STATES = frozenset({ReplicaState.FAILURE, ReplicaState.ABORTED})


class ReplicaStatus(_ApiModel):
    state: ReplicaState = ReplicaState.UNKNOWN
    replica: Optional[str] = None
    server: Optional[str] = None


class PipelineStageStatus(_ApiModel):
    """Aggregate status of a pipeline stage across its replicas.

    A failure or abort on any replica fails the stage even while other
    replicas are still pending. The stage succeeds only when at least one
    replica reported and every replica reports success.
    """

    stage: str
    replicas: List[ReplicaStatus] = Field(default_factory=list)

    @property
    def states(self) -> List[str]:
        return [replica.state.value for replica in self.replicas]

    @property
    def failed(self) -> bool:
        return any(replica.state in FAILED_STATES for replica in self.replicas)

    @property
    def succeeded(self) -> bool:
        return bool(self.replicas) and all(
            replica.state == ReplicaState.SUCCESS for replica in self.replicas
        )


class EnvVar(_ApiModel):
    name: str
    value: str

    @classmethod
    def from_mapping(cls, env_vars: Dict[str, str]) -> List["EnvVar"]:
        return [cls(name=name, value=value) for name, value in env_vars.items()]


class CreateWorkspaceRequest(_ApiModel):
    """Arguments for creating a workspace.

    Attributes:
        team_id: Team that owns the workspace.
        plan_id: Hosting plan.
        name: Workspace name from the identity resolver.
        git_url: Clone URL of the repository.
        initial_branch: Branch checked out on creation.
        is_private_repo: Whether the platform should clone with credentials.
        replicas: Replica count for the workspace.
        env: Environment variables set on creation.
        vpn_config: Optional VPN config name.
    """

    team_id: int = Field(alias="teamId")
    plan_id: int = Field(alias="planId")
    name: str
    git_url: str = Field(alias="gitUrl")
    initial_branch: str = Field(alias="initialBranch")
    is_private_repo: bool = Field(default=True, alias="isPrivateRepo")
    replicas: int = 1
    env: List[EnvVar] = Field(default_factory=list)
    vpn_config: Optional[str] = Field(default=None, alias="vpnConfig")

    def to_payload(self) -> Dict[str, Any]:
        """Request body with optional fields omitted when unset."""
        payload = self.model_dump(by_alias=True, exclude={"env", "vpn_config"})
        if self.env:
            payload["env"] = [item.model_dump() for item in self.env]
        if self.vpn_config:
            payload["vpnConfig"] = self.vpn_config
        return payload
