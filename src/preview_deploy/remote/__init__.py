"""Codesphere API boundary.

A thin, stateless request/response layer over the workspace platform.
Every call returns structured records and reports failures as
TransportError, never as an empty result.
"""

from preview_deploy.remote.client import CodesphereClient
from preview_deploy.remote.models import (
    CreateWorkspaceRequest,
    EnvVar,
    PipelineStageStatus,
    ReplicaState,
    ReplicaStatus,
    Workspace,
    WorkspaceStatus,
)

__all__ = [
    "CodesphereClient",
    "CreateWorkspaceRequest",
    "EnvVar",
    "PipelineStageStatus",
    "ReplicaState",
    "ReplicaStatus",
    "Workspace",
    "WorkspaceStatus",
]
