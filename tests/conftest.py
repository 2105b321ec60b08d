"""Shared fixtures: an in-memory Codesphere double and a fake clock."""

import os
from typing import Dict, List, Optional, Sequence, Union

import pytest

from preview_deploy.config import DeploySettings
from preview_deploy.errors import TransportError
from preview_deploy.remote.models import (
    CreateWorkspaceRequest,
    EnvVar,
    PipelineStageStatus,
    ReplicaStatus,
    Workspace,
    WorkspaceStatus,
)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


StageResponse = Union[Sequence[str], Exception]


class FakePlatform:
    """In-memory stand-in for CodesphereClient.

    Records every call as (method, args). Workspace status and stage
    status responses are scripted per workspace / stage; the last scripted
    response repeats once the script runs out.
    """

    def __init__(self, workspaces: Optional[List[Workspace]] = None):
        self.workspaces: List[Workspace] = list(workspaces or [])
        self.calls: List[tuple] = []
        self.running: Dict[int, List[bool]] = {}
        self.stage_responses: Dict[str, List[StageResponse]] = {}
        self.failures: Dict[str, Exception] = {}
        self.next_id = 5000
        self.closed = False

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    @staticmethod
    def _next(script: list):
        return script.pop(0) if len(script) > 1 else script[0]

    async def list_workspaces(self, team_id: int) -> List[Workspace]:
        self._record("list_workspaces", team_id)
        return list(self.workspaces)

    async def create_workspace(self, request: CreateWorkspaceRequest) -> Workspace:
        self._record("create_workspace", request)
        workspace = Workspace(id=self.next_id, name=request.name, team_id=request.team_id)
        self.next_id += 1
        self.workspaces.append(workspace)
        return workspace

    async def delete_workspace(self, workspace_id: int) -> None:
        self._record("delete_workspace", workspace_id)
        self.workspaces = [ws for ws in self.workspaces if ws.id != workspace_id]

    async def get_workspace_status(self, workspace_id: int) -> WorkspaceStatus:
        self._record("get_workspace_status", workspace_id)
        script = self.running.get(workspace_id)
        running = self._next(script) if script else True
        return WorkspaceStatus(is_running=running)

    async def git_pull(self, workspace_id: int, remote: str, branch: str) -> None:
        self._record("git_pull", workspace_id, remote, branch)

    async def set_env_vars(self, workspace_id: int, entries: Sequence[EnvVar]) -> None:
        self._record("set_env_vars", workspace_id, list(entries))

    async def start_pipeline_stage(self, workspace_id: int, stage: str) -> None:
        self._record("start_pipeline_stage", workspace_id, stage)

    async def get_pipeline_stage_status(
        self, workspace_id: int, stage: str
    ) -> PipelineStageStatus:
        self._record("get_pipeline_stage_status", workspace_id, stage)
        script = self.stage_responses.get(stage)
        response = self._next(script) if script else ["success"]
        if isinstance(response, Exception):
            raise response
        return PipelineStageStatus(
            stage=stage,
            replicas=[ReplicaStatus(state=state) for state in response],
        )

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the runner's INPUT_*/GITHUB_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith(("INPUT_", "GITHUB_")):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings():
    def _make(**overrides) -> DeploySettings:
        values = {
            "token": "cs-test-token",
            "team_id": 42,
            "plan_id": 8,
            "repository": "acme/my-app",
            "server_url": "https://github.com",
            "event_name": "pull_request",
            "head_ref": "feature/login",
            "ref_name": "42/merge",
            "stages_raw": "prepare test run",
            "poll_interval_seconds": 5.0,
            "ready_timeout_seconds": 300.0,
            "stage_timeout_seconds": 1800.0,
        }
        values.update(overrides)
        return DeploySettings(**values)

    return _make


@pytest.fixture
def settings(make_settings) -> DeploySettings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("GET /x -> 503: unavailable", status_code=503)
