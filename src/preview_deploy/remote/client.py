"""Codesphere API client for workspace and pipeline operations.

This module provides an async wrapper around the Codesphere REST API for:
- Listing, creating and deleting workspaces
- Reading workspace running status
- Pulling a branch into a workspace
- Replacing workspace environment variables
- Starting pipeline stages and reading their replica states

Every method is a single request/response. The client never retries; the
callers decide which failures are transient (see orchestrator.py).
"""

from typing import Any, List, Optional, Sequence
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from preview_deploy.errors import AuthorizationError, TransportError
from preview_deploy.remote.models import (
    CreateWorkspaceRequest,
    EnvVar,
    PipelineStageStatus,
    ReplicaStatus,
    Workspace,
    WorkspaceStatus,
)

logger = structlog.get_logger(__name__)

# Keep HTML error pages out of logs and error messages
MAX_ERROR_BODY_CHARS = 200
AUTHORIZATION_STATUS_CODES = {401, 403}


def _segment(value: str) -> str:
    """Percent-encode a caller-supplied path segment, including '/' and '#'."""
    return quote(value, safe="")


def _truncate(text: str) -> str:
    if len(text) > MAX_ERROR_BODY_CHARS:
        return text[:MAX_ERROR_BODY_CHARS] + "..."
    return text


class CodesphereClient:
    """Async Codesphere API client.

    Attributes:
        token: Codesphere API token.
        base_url: Base URL of the API (e.g. https://codesphere.com/api).
        timeout: Transport timeout in seconds for each request.

    Example:
        >>> async with CodesphereClient(token="...") as client:
        ...     workspaces = await client.list_workspaces(team_id=42)
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://codesphere.com/api",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            token: API token sent as a bearer credential.
            base_url: Base URL for the API.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "preview-deploy/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CodesphereClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Any = None,
    ) -> Any:
        """Make a single HTTP request and decode the JSON response.

        Args:
            method: HTTP method.
            path: API path relative to the base URL.
            json_data: Optional JSON body.

        Returns:
            The decoded JSON body, or None for an empty body.

        Raises:
            AuthorizationError: On 401/403 responses.
            TransportError: On network errors, timeouts, other non-2xx
                responses, or a body that is not valid JSON.
        """
        try:
            response = await self.client.request(method, path, json=json_data)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"{method} {path} timed out after {self.timeout:g}s",
                method=method,
                path=path,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{method} {path} failed: {exc}",
                method=method,
                path=path,
            ) from exc

        if not response.is_success:
            body = _truncate(response.text)
            logger.error(
                "Codesphere API error",
                method=method,
                path=path,
                status_code=response.status_code,
                response_body=body,
            )
            error_class = (
                AuthorizationError
                if response.status_code in AUTHORIZATION_STATUS_CODES
                else TransportError
            )
            raise error_class(
                f"{method} {path} -> {response.status_code}: {body}",
                status_code=response.status_code,
                method=method,
                path=path,
                response_body=body,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method} {path} returned malformed JSON",
                status_code=response.status_code,
                method=method,
                path=path,
                response_body=_truncate(response.text),
            ) from exc

    def _malformed(self, method: str, path: str, exc: Exception) -> TransportError:
        return TransportError(
            f"{method} {path} returned an unexpected response shape: {exc}",
            method=method,
            path=path,
        )

    async def list_workspaces(self, team_id: int) -> List[Workspace]:
        """List all workspaces of a team.

        Raises:
            AuthorizationError: If the token may not read the team.
            TransportError: If the request fails.
        """
        path = f"/workspaces/team/{team_id}"
        data = await self._request("GET", path)
        if not isinstance(data, list):
            raise self._malformed("GET", path, TypeError("expected a list"))
        try:
            workspaces = [Workspace.model_validate(item) for item in data]
        except ValidationError as exc:
            raise self._malformed("GET", path, exc) from exc

        logger.debug("Listed workspaces", team_id=team_id, count=len(workspaces))
        return workspaces

    async def create_workspace(self, request: CreateWorkspaceRequest) -> Workspace:
        """Create a workspace. The caller does not retry on failure.

        Raises:
            TransportError: If the platform rejects the request.
        """
        logger.info(
            "Creating workspace",
            name=request.name,
            team_id=request.team_id,
            plan_id=request.plan_id,
            branch=request.initial_branch,
        )
        data = await self._request("POST", "/workspaces", request.to_payload())
        try:
            workspace = Workspace.model_validate(data)
        except ValidationError as exc:
            raise self._malformed("POST", "/workspaces", exc) from exc

        logger.info("Workspace created", workspace_id=workspace.id, name=workspace.name)
        return workspace

    async def delete_workspace(self, workspace_id: int) -> None:
        logger.info("Deleting workspace", workspace_id=workspace_id)
        await self._request("DELETE", f"/workspaces/{workspace_id}")

    async def get_workspace_status(self, workspace_id: int) -> WorkspaceStatus:
        path = f"/workspaces/{workspace_id}/status"
        data = await self._request("GET", path)
        try:
            return WorkspaceStatus.model_validate(data)
        except ValidationError as exc:
            raise self._malformed("GET", path, exc) from exc

    async def git_pull(self, workspace_id: int, remote: str, branch: str) -> None:
        """Pull a branch from a git remote into the workspace."""
        logger.info("Pulling branch", workspace_id=workspace_id, remote=remote, branch=branch)
        path = f"/workspaces/{workspace_id}/git/pull/{_segment(remote)}/{_segment(branch)}"
        await self._request("POST", path)

    async def set_env_vars(self, workspace_id: int, entries: Sequence[EnvVar]) -> None:
        """Replace the named environment variables on a workspace.

        Sends nothing when entries is empty.
        """
        if not entries:
            return
        logger.info(
            "Setting environment variables",
            workspace_id=workspace_id,
            names=[entry.name for entry in entries],
        )
        await self._request(
            "PUT",
            f"/workspaces/{workspace_id}/env-vars",
            [entry.model_dump() for entry in entries],
        )

    async def start_pipeline_stage(self, workspace_id: int, stage: str) -> None:
        logger.info("Starting pipeline stage", workspace_id=workspace_id, stage=stage)
        await self._request("POST", f"/workspaces/{workspace_id}/pipeline/{_segment(stage)}/start")

    async def get_pipeline_stage_status(
        self, workspace_id: int, stage: str
    ) -> PipelineStageStatus:
        """Read the replica states of a pipeline stage.

        The platform answers with an array of replica records, or a single
        record for single-replica stages.
        """
        path = f"/workspaces/{workspace_id}/pipeline/{_segment(stage)}"
        data = await self._request("GET", path)
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise self._malformed("GET", path, TypeError("expected a list or object"))
        try:
            replicas = [ReplicaStatus.model_validate(item) for item in data]
        except ValidationError as exc:
            raise self._malformed("GET", path, exc) from exc
        return PipelineStageStatus(stage=stage, replicas=replicas)
