"""Lookup of the preview workspace by name."""

from typing import Optional

import structlog

from preview_deploy.remote.client import CodesphereClient
from preview_deploy.remote.models import Workspace

logger = structlog.get_logger(__name__)


class WorkspaceLocator:
    """Finds the workspace whose name matches a resolved identity.

    Matching is exact and case-sensitive. Names are assumed unique within a
    team; if duplicates exist the first in list order wins.
    """

    def __init__(self, client: CodesphereClient):
        self.client = client

    async def find(self, team_id: int, name: str) -> Optional[Workspace]:
        """Return the workspace named `name`, or None when there is none.

        Raises:
            TransportError: If listing the team's workspaces fails.
        """
        logger.info("Looking for workspace", name=name, team_id=team_id)
        workspaces = await self.client.list_workspaces(team_id)
        matches = [workspace for workspace in workspaces if workspace.name == name]

        if not matches:
            logger.info("No workspace found", name=name)
            return None

        if len(matches) > 1:
            logger.warning(
                "Multiple workspaces share the same name; using the first",
                name=name,
                workspace_ids=[workspace.id for workspace in matches],
            )

        found = matches[0]
        logger.info("Found workspace", name=name, workspace_id=found.id)
        return found
