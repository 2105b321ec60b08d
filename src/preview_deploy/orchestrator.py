"""Pipeline orchestrator running workspace stages in order.

Drives a workspace through its configured pipeline (e.g. prepare → test →
run). Stages execute strictly one after another; a stage starts only once
the previous one has succeeded. One designated stage (conventionally "run")
is a long-lived service and is started without waiting for it to finish.

Failure classification while waiting on a stage:
- TransportError from the status call: transient, keep polling
- failure/aborted on any replica: fatal, PipelineFailure
- deadline passed: fatal, WaitTimeoutError
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from preview_deploy.errors import PipelineFailure, TransportError, WaitTimeoutError
from preview_deploy.remote.client import CodesphereClient

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]

DEFAULT_FIRE_AND_FORGET_STAGE = "run"


class PipelineOrchestrator:
    """Sequences pipeline stages against a workspace.

    Attributes:
        client: Codesphere API client.
        poll_interval: Seconds between stage status reads.
        stage_timeout: Deadline in seconds for each awaited stage.
        fire_and_forget_stage: Stage that is started but never awaited.
    """

    def __init__(
        self,
        client: CodesphereClient,
        poll_interval: float = 5.0,
        stage_timeout: float = 1800.0,
        fire_and_forget_stage: str = DEFAULT_FIRE_AND_FORGET_STAGE,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
        on_stage_complete: Optional[Callable[[str, float], None]] = None,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.stage_timeout = stage_timeout
        self.fire_and_forget_stage = fire_and_forget_stage
        self._sleep = sleep
        self._clock = clock
        self._on_stage_complete = on_stage_complete

    async def run(self, workspace_id: int, stages: Sequence[str]) -> List[str]:
        """Run the stages in order against the workspace.

        Args:
            workspace_id: Target workspace.
            stages: Stage names in execution order; may be empty.

        Returns:
            The stages that were started, in order.

        Raises:
            TransportError: If starting a stage fails.
            PipelineFailure: If a stage reports failure or aborted.
            WaitTimeoutError: If a stage does not finish before its deadline.
        """
        started: List[str] = []
        if not stages:
            logger.info("No pipeline stages to run", workspace_id=workspace_id)
            return started

        logger.info(
            "Running pipeline",
            workspace_id=workspace_id,
            stages=" → ".join(stages),
        )

        for stage in stages:
            started_at = self._clock()
            await self.client.start_pipeline_stage(workspace_id, stage)
            started.append(stage)

            if stage == self.fire_and_forget_stage:
                logger.info("Stage triggered", workspace_id=workspace_id, stage=stage)
                continue

            await self._wait_for_stage(workspace_id, stage)
            duration = self._clock() - started_at
            logger.info(
                "Stage completed",
                workspace_id=workspace_id,
                stage=stage,
                duration_seconds=round(duration, 1),
            )
            if self._on_stage_complete is not None:
                self._on_stage_complete(stage, duration)

        return started

    async def _wait_for_stage(self, workspace_id: int, stage: str) -> None:
        """Poll the stage until every replica succeeds.

        Sleeps before each read, since a freshly started stage has not
        reported yet.
        """
        deadline = self._clock() + self.stage_timeout

        while self._clock() < deadline:
            await self._sleep(self.poll_interval)

            try:
                status = await self.client.get_pipeline_stage_status(workspace_id, stage)
            except TransportError as exc:
                logger.warning(
                    "Transient error reading stage status, retrying",
                    workspace_id=workspace_id,
                    stage=stage,
                    error=str(exc),
                )
                continue

            if status.failed:
                logger.error(
                    "Stage failed",
                    workspace_id=workspace_id,
                    stage=stage,
                    states=status.states,
                )
                raise PipelineFailure(stage, status.states)

            if status.succeeded:
                return

            logger.debug(
                "Stage still in progress",
                workspace_id=workspace_id,
                stage=stage,
                states=status.states,
            )

        raise WaitTimeoutError(f"Pipeline stage '{stage}'", self.stage_timeout)
