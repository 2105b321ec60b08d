"""Workspace lifecycle management for preview deployments.

Decides, once per invocation, whether the preview workspace for the
resolved identity is created, updated or deleted, and drives that path:

    closure event, workspace found   → delete
    closure event, workspace absent  → nothing to do
    open/update,   workspace found   → wait for running → git pull
                                       → env vars → report → pipeline
    open/update,   workspace absent  → create → wait for running
                                       → report → pipeline

Every fatal error propagates immediately. Nothing is rolled back: a
workspace whose pipeline fails stays as it is.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import structlog

from preview_deploy.config import DeploySettings
from preview_deploy.errors import WaitTimeoutError
from preview_deploy.events.models import TriggerEvent
from preview_deploy.identity import WorkspaceIdentity
from preview_deploy.locator import WorkspaceLocator
from preview_deploy.orchestrator import Clock, PipelineOrchestrator, Sleep
from preview_deploy.remote.client import CodesphereClient
from preview_deploy.remote.models import CreateWorkspaceRequest, EnvVar, Workspace
from preview_deploy.reporting import ResultReporter

logger = structlog.get_logger(__name__)

GIT_REMOTE = "origin"


class ReconcileAction(str, Enum):
    """What a reconciliation run does to the workspace.

    Attributes:
        CREATE: No workspace exists yet; create one and run the pipeline.
        UPDATE: The workspace exists; refresh it and run the pipeline.
        DELETE: The pull request closed; delete the workspace.
        NOOP: The pull request closed and there is nothing to delete.
    """

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


# (closure event, workspace found) -> action
DECISION_TABLE: Dict[Tuple[bool, bool], ReconcileAction] = {
    (True, True): ReconcileAction.DELETE,
    (True, False): ReconcileAction.NOOP,
    (False, True): ReconcileAction.UPDATE,
    (False, False): ReconcileAction.CREATE,
}


def decide_action(event: TriggerEvent, found: bool) -> ReconcileAction:
    return DECISION_TABLE[(event.is_closure, found)]


def deployment_url(workspace: Workspace, url_template: str) -> str:
    """URL the preview is served at.

    Uses the platform-reported dev domain when present, otherwise the
    configured template keyed by workspace id.
    """
    if workspace.dev_domain:
        return f"https://{workspace.dev_domain.rstrip('/')}/"
    return url_template.format(workspace_id=workspace.id)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconciliation run.

    Attributes:
        action: The path that was taken.
        workspace_id: Affected workspace, if any.
        url: Deployment URL for create/update runs.
        triggered_stages: Pipeline stages that were started, in order.
    """

    action: ReconcileAction
    workspace_id: Optional[int] = None
    url: Optional[str] = None
    triggered_stages: Tuple[str, ...] = ()


class LifecycleManager:
    """Creates, updates or deletes the preview workspace.

    Attributes:
        client: Codesphere API client.
        locator: Finds the workspace for an identity.
        orchestrator: Runs the pipeline after create/update.
        reporter: Receives the workspace id and URL.
        settings: Run configuration.
    """

    def __init__(
        self,
        client: CodesphereClient,
        locator: WorkspaceLocator,
        orchestrator: PipelineOrchestrator,
        reporter: ResultReporter,
        settings: DeploySettings,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        self.client = client
        self.locator = locator
        self.orchestrator = orchestrator
        self.reporter = reporter
        self.settings = settings
        self._sleep = sleep
        self._clock = clock
        # Action decided by the latest reconcile call, kept for failure metrics
        self.last_action: Optional[ReconcileAction] = None

    async def reconcile(
        self, identity: WorkspaceIdentity, event: TriggerEvent
    ) -> ReconcileResult:
        """Reconcile the workspace for `identity` against the trigger event.

        Raises:
            TransportError: If a remote call fails.
            WaitTimeoutError: If the workspace or a stage misses its deadline.
            PipelineFailure: If a pipeline stage fails.
        """
        logger.info(
            "Reconciling workspace",
            name=identity.name,
            branch=identity.branch,
            trigger=event.kind.value,
            action=event.action or None,
        )

        self.last_action = None
        workspace = await self.locator.find(self.settings.team_id, identity.name)
        action = decide_action(event, workspace is not None)
        self.last_action = action
        logger.info("Reconcile action decided", action=action.value, name=identity.name)

        if action == ReconcileAction.NOOP:
            logger.info("No workspace found, nothing to delete", name=identity.name)
            return ReconcileResult(action=action)

        if action == ReconcileAction.DELETE:
            await self.client.delete_workspace(workspace.id)
            logger.info("Workspace deleted", workspace_id=workspace.id)
            return ReconcileResult(action=action, workspace_id=workspace.id)

        if action == ReconcileAction.UPDATE:
            await self._update(workspace, identity)
        else:
            workspace = await self._create(identity)

        return await self._deploy(workspace, action)

    async def wait_for_running(self, workspace_id: int) -> None:
        """Block until the workspace reports running.

        Raises:
            WaitTimeoutError: If it is not running before the deadline.
            TransportError: If a status read fails.
        """
        timeout = self.settings.ready_timeout_seconds
        deadline = self._clock() + timeout
        logger.info("Waiting for workspace to be running", workspace_id=workspace_id)

        while self._clock() < deadline:
            status = await self.client.get_workspace_status(workspace_id)
            if status.running:
                logger.info("Workspace is running", workspace_id=workspace_id)
                return
            await self._sleep(self.settings.poll_interval_seconds)

        raise WaitTimeoutError(f"Workspace {workspace_id} startup", timeout)

    async def _create(self, identity: WorkspaceIdentity) -> Workspace:
        request = CreateWorkspaceRequest(
            team_id=self.settings.team_id,
            plan_id=self.settings.plan_id,
            name=identity.name,
            git_url=self.settings.clone_url,
            initial_branch=identity.branch,
            env=EnvVar.from_mapping(self.settings.env_vars),
            vpn_config=self.settings.vpn_config or None,
        )
        workspace = await self.client.create_workspace(request)
        await self.wait_for_running(workspace.id)
        return workspace

    async def _update(self, workspace: Workspace, identity: WorkspaceIdentity) -> None:
        logger.info("Updating workspace", workspace_id=workspace.id)
        await self.wait_for_running(workspace.id)
        await self.client.git_pull(workspace.id, GIT_REMOTE, identity.branch)

        env_vars = self.settings.env_vars
        if env_vars:
            await self.client.set_env_vars(workspace.id, EnvVar.from_mapping(env_vars))

    async def _deploy(self, workspace: Workspace, action: ReconcileAction) -> ReconcileResult:
        url = deployment_url(workspace, self.settings.url_template)
        await self.reporter.report(workspace.id, url)

        triggered = await self.orchestrator.run(workspace.id, self.settings.stages)
        logger.info(
            "Workspace deployed",
            action=action.value,
            workspace_id=workspace.id,
            url=url,
        )
        return ReconcileResult(
            action=action,
            workspace_id=workspace.id,
            url=url,
            triggered_stages=tuple(triggered),
        )
