"""Property-based tests for workspace identity resolution.

Both lookup and creation key on the computed workspace name, so the
resolver must be a pure function of its inputs.
"""

import pytest
from hypothesis import HealthCheck, given, settings as hypothesis_settings, strategies as st

from preview_deploy.events import EventKind, TriggerEvent
from preview_deploy.identity import (
    WorkspaceIdentity,
    repository_short_name,
    resolve_branch,
    resolve_identity,
    workspace_name,
)


# =============================================================================
# Hypothesis Strategies
# =============================================================================

name_part = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N"), whitelist_characters="-_."),
    min_size=1,
    max_size=30,
)

branch_name = st.lists(name_part, min_size=1, max_size=4).map("/".join)

pr_number = st.integers(min_value=1, max_value=10**6)


@st.composite
def repository_slug(draw: st.DrawFn) -> str:
    return f"{draw(name_part)}/{draw(name_part)}"


# =============================================================================
# Properties
# =============================================================================


@hypothesis_settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(repository=repository_slug(), number=st.none() | pr_number, branch=branch_name)
def test_workspace_name_is_deterministic(repository, number, branch):
    assert workspace_name(repository, number, branch) == workspace_name(
        repository, number, branch
    )


@hypothesis_settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(repository=repository_slug(), number=pr_number, branch=branch_name)
def test_pull_request_name_ignores_branch(repository, number, branch):
    name = workspace_name(repository, number, branch)
    assert name == f"{repository_short_name(repository)}-#{number}"
    assert name == workspace_name(repository, number, "main")


@hypothesis_settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(repository=repository_slug(), branch=branch_name)
def test_branch_name_contains_no_slash_after_repo(repository, branch):
    name = workspace_name(repository, None, branch)
    repo = repository_short_name(repository)
    assert name.startswith(f"{repo}-")
    assert "/" not in name[len(repo) + 1:]


@hypothesis_settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(override=st.text(max_size=20), head_ref=st.text(max_size=20), ref_name=st.text(max_size=20))
def test_resolve_branch_never_empty(override, head_ref, ref_name):
    assert resolve_branch(override, head_ref, ref_name)


# =============================================================================
# Known cases
# =============================================================================


class TestResolveBranch:
    @pytest.mark.parametrize(
        "override, head_ref, ref_name, expected",
        [
            ("feat", "pr-branch", "main", "feat"),
            ("", "pr-branch", "main", "pr-branch"),
            ("", "", "develop", "develop"),
            ("", "", "", "main"),
        ],
    )
    def test_precedence(self, override, head_ref, ref_name, expected):
        assert resolve_branch(override, head_ref, ref_name) == expected


class TestWorkspaceName:
    def test_pull_request(self):
        assert workspace_name("acme/my-app", 42, "feature/login") == "my-app-#42"

    def test_branch_slashes_replaced(self):
        assert workspace_name("acme/my-app", None, "feature/login") == "my-app-feature-login"

    def test_bare_repository_name(self):
        assert workspace_name("my-app", None, "main") == "my-app-main"


class TestResolveIdentity:
    def test_pull_request_uses_number_and_head_ref(self, settings):
        event = TriggerEvent(kind=EventKind.PULL_REQUEST, action="opened", number=42)
        assert resolve_identity(settings, event) == WorkspaceIdentity(
            name="my-app-#42", branch="feature/login"
        )

    def test_override_wins(self, make_settings):
        settings = make_settings(branch="release/1.0")
        event = TriggerEvent(kind=EventKind.PULL_REQUEST, action="opened", number=42)
        identity = resolve_identity(settings, event)
        assert identity.branch == "release/1.0"
        assert identity.name == "my-app-#42"

    def test_push_ignores_head_ref(self, make_settings):
        settings = make_settings(ref_name="develop")
        identity = resolve_identity(settings, TriggerEvent(kind=EventKind.PUSH))
        assert identity == WorkspaceIdentity(name="my-app-develop", branch="develop")

    def test_closure_resolves_same_name_as_open(self, settings):
        opened = TriggerEvent(kind=EventKind.PULL_REQUEST, action="opened", number=7)
        closed = TriggerEvent(kind=EventKind.PULL_REQUEST, action="closed", number=7)
        assert resolve_identity(settings, opened).name == resolve_identity(settings, closed).name
