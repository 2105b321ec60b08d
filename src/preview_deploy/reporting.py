"""Result reporters publishing the deployment's workspace id and URL.

The reconciliation core hands (workspace_id, url) to a ResultReporter as
soon as the workspace exists, before the pipeline runs, so a failed pipeline
still leaves the URL available to later workflow steps.

- GitHubActionsReporter: appends to GITHUB_OUTPUT and GITHUB_STEP_SUMMARY
- LoggingReporter: logs the deployment URL
- CompositeReporter: reports to several sinks in order
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import structlog

from preview_deploy.errors import ReportingError

logger = structlog.get_logger(__name__)

SUMMARY_HEADING = "### 🚀 Codesphere Deployment"


def format_outputs(workspace_id: int, url: str) -> str:
    """Render the key=value lines for the step output file."""
    return f"deployment-url={url}\nworkspace-id={workspace_id}\n"


def format_summary(workspace_id: int, url: str) -> str:
    """Render the Markdown table for the job summary."""
    return (
        f"{SUMMARY_HEADING}\n"
        "\n"
        "| Property | Value |\n"
        "|----------|-------|\n"
        f"| **URL** | [{url}]({url}) |\n"
        f"| **Workspace** | `{workspace_id}` |\n"
    )


class ResultReporter(ABC):
    """Receives the deployment result from the reconciliation core."""

    @abstractmethod
    async def report(self, workspace_id: int, url: str) -> None:
        """Publish the workspace id and deployment URL."""
        pass


class LoggingReporter(ResultReporter):
    async def report(self, workspace_id: int, url: str) -> None:
        logger.info("Deployment URL", url=url, workspace_id=workspace_id)


class GitHubActionsReporter(ResultReporter):
    """Appends the result to the GitHub Actions output and summary files.

    Both files are append-only and optional; an unset path is skipped.
    A write failure fails the run, since later steps read deployment-url.

    Attributes:
        output_path: Path from GITHUB_OUTPUT.
        summary_path: Path from GITHUB_STEP_SUMMARY.
    """

    def __init__(self, output_path: str = "", summary_path: str = ""):
        self.output_path = output_path
        self.summary_path = summary_path

    async def report(self, workspace_id: int, url: str) -> None:
        self._append(self.output_path, format_outputs(workspace_id, url))
        self._append(self.summary_path, format_summary(workspace_id, url))

    def _append(self, path: str, content: str) -> None:
        if not path:
            return
        try:
            with Path(path).open("a", encoding="utf-8") as handle:
                handle.write(content)
        except OSError as exc:
            logger.error("Failed to append deployment result", path=path, error=str(exc))
            raise ReportingError(path, str(exc)) from exc


class CompositeReporter(ResultReporter):
    def __init__(self, reporters: Optional[List[ResultReporter]] = None):
        self._reporters: List[ResultReporter] = reporters or []

    @property
    def reporters(self) -> List[ResultReporter]:
        return list(self._reporters)

    async def report(self, workspace_id: int, url: str) -> None:
        for reporter in self._reporters:
            await reporter.report(workspace_id, url)
