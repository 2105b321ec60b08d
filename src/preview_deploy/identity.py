"""Workspace identity resolution.

Maps a repository and its change request (or branch) to the workspace name
and the branch that workspace should track. Both the lookup of an existing
workspace and the creation of a new one depend on producing the same name,
so this module is the only place the naming scheme is defined.

Naming scheme:
    "<repo>-#<pr-number>"  e.g. "my-app-#42"
    "<repo>-<branch>"      when no pull request number is known,
                           with "/" in the branch replaced by "-"
"""

from dataclasses import dataclass
from typing import Optional

from preview_deploy.config import DeploySettings
from preview_deploy.events.models import TriggerEvent

FALLBACK_BRANCH = "main"


@dataclass(frozen=True)
class WorkspaceIdentity:
    """Resolved identity of the preview workspace for this run.

    Attributes:
        name: Deterministic workspace name used as the lookup key.
        branch: Branch the workspace is created from and pulls.
    """

    name: str
    branch: str


def repository_short_name(repository: str) -> str:
    """Return the repository name without its owner ("acme/app" -> "app")."""
    return repository.rstrip("/").split("/")[-1]


def resolve_branch(override: str = "", head_ref: str = "", ref_name: str = "") -> str:
    """Pick the target branch.

    Precedence: explicit override, then the pull request head branch, then
    the ref name, then "main".
    """
    return override or head_ref or ref_name or FALLBACK_BRANCH


def workspace_name(repository: str, number: Optional[int], branch: str) -> str:
    """Compute the workspace name for a repository and change request.

    Args:
        repository: Repository slug ("owner/name") or bare name.
        number: Pull request number, or None outside a pull request.
        branch: Target branch; keys the name when there is no number.

    Returns:
        The workspace name. Identical inputs always give identical names.
    """
    repo = repository_short_name(repository)
    if number is not None:
        return f"{repo}-#{number}"
    return f"{repo}-{branch.replace('/', '-')}"


def resolve_identity(settings: DeploySettings, event: TriggerEvent) -> WorkspaceIdentity:
    """Resolve the workspace identity from configuration and trigger event."""
    head_ref = settings.head_ref if event.is_pull_request else ""
    branch = resolve_branch(settings.branch, head_ref, settings.ref_name)
    return WorkspaceIdentity(
        name=workspace_name(settings.repository, event.number, branch),
        branch=branch,
    )
