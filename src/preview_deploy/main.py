"""Entry point for a preview deployment run.

Runs once per GitHub Actions job: reads configuration from the runner's
environment, reconciles the preview workspace for the triggering event and
exits 0 on success or 1 on any fatal error.
"""

import asyncio
import sys
import time
from typing import Optional

import structlog

from preview_deploy.config import DeploySettings, describe_settings, load_settings
from preview_deploy.errors import ConfigurationError, DeployError
from preview_deploy.events.handler import load_trigger_event
from preview_deploy.identity import resolve_identity
from preview_deploy.lifecycle import LifecycleManager
from preview_deploy.locator import WorkspaceLocator
from preview_deploy.log import configure_logging
from preview_deploy.metrics import DeployMetrics
from preview_deploy.orchestrator import Clock, PipelineOrchestrator, Sleep
from preview_deploy.remote.client import CodesphereClient
from preview_deploy.reporting import (
    CompositeReporter,
    GitHubActionsReporter,
    LoggingReporter,
    ResultReporter,
)

logger = structlog.get_logger(__name__)


class DeployRunner:
    """Wires the reconciliation components for one run."""

    def __init__(
        self,
        settings: DeploySettings,
        client: Optional[CodesphereClient] = None,
        reporter: Optional[ResultReporter] = None,
        metrics: Optional[DeployMetrics] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        self.settings = settings
        self.metrics = metrics or DeployMetrics()
        self.client = client or CodesphereClient(
            token=settings.token,
            base_url=settings.api_url,
            timeout=settings.request_timeout_seconds,
        )
        self.reporter = reporter or CompositeReporter(
            [
                LoggingReporter(),
                GitHubActionsReporter(settings.output_path, settings.summary_path),
            ]
        )
        self._clock = clock

        orchestrator = PipelineOrchestrator(
            client=self.client,
            poll_interval=settings.poll_interval_seconds,
            stage_timeout=settings.stage_timeout_seconds,
            fire_and_forget_stage=settings.fire_and_forget_stage,
            sleep=sleep,
            clock=clock,
            on_stage_complete=self.metrics.record_stage,
        )
        self.lifecycle = LifecycleManager(
            client=self.client,
            locator=WorkspaceLocator(self.client),
            orchestrator=orchestrator,
            reporter=self.reporter,
            settings=settings,
            sleep=sleep,
            clock=clock,
        )

    async def run(self) -> int:
        """Reconcile once and return the process exit code."""
        start_time = self._clock()
        event = load_trigger_event(self.settings.event_name, self.settings.event_path)
        identity = resolve_identity(self.settings, event)
        logger.info("Target branch", branch=identity.branch, workspace=identity.name)

        try:
            result = await self.lifecycle.reconcile(identity, event)
        except DeployError as e:
            last_action = self.lifecycle.last_action
            self.metrics.record_failure(
                type(e).__name__,
                self._clock() - start_time,
                action=last_action.value if last_action else "unknown",
            )
            logger.error(f"❌ {e}", error_type=type(e).__name__)
            exit_code = 1
        else:
            self.metrics.record_success(result.action.value, self._clock() - start_time)
            logger.info(
                "✅ Reconciliation complete",
                action=result.action.value,
                workspace_id=result.workspace_id,
                url=result.url,
            )
            exit_code = 0
        finally:
            await self.client.close()

        self.metrics.push(self.settings.prometheus_gateway_url)
        return exit_code


def main() -> None:
    """Console script entry point."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"❌ {e}", fields=e.fields)
        sys.exit(1)

    configure_logging(settings.log_level, settings.log_format)
    logger.info("Deployment configuration", **describe_settings(settings))

    exit_code = asyncio.run(DeployRunner(settings).run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
