"""Unit tests for the run entry point."""

import asyncio
import json
from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from preview_deploy import main as main_module
from preview_deploy.main import DeployRunner
from preview_deploy.metrics import DeployMetrics
from preview_deploy.remote.models import Workspace


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def make_runner(platform, clock, make_settings, tmp_path):
    def _make(payload: dict, **overrides):
        event_path = tmp_path / "event.json"
        event_path.write_text(json.dumps(payload))
        values = {
            "event_path": str(event_path),
            "output_path": str(tmp_path / "output"),
            "summary_path": str(tmp_path / "summary.md"),
        }
        values.update(overrides)
        registry = CollectorRegistry()
        runner = DeployRunner(
            make_settings(**values),
            client=platform,
            metrics=DeployMetrics(registry=registry),
            sleep=clock.sleep,
            clock=clock,
        )
        return runner, registry

    return _make


class TestDeployRunner:
    def test_successful_create(self, platform, make_runner, tmp_path):
        runner, registry = make_runner({"action": "opened", "number": 42})

        assert run_async(runner.run()) == 0

        assert platform.closed
        assert platform.workspaces[0].name == "my-app-#42"
        output = (tmp_path / "output").read_text()
        assert "deployment-url=https://5000-3000.2.codesphere.com/" in output
        assert "workspace-id=5000" in output
        assert registry.get_sample_value(
            "preview_deploy_reconciliations_total", {"action": "create", "status": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "preview_deploy_stage_duration_seconds_count", {"stage": "prepare"}
        ) == 1.0

    def test_closed_pull_request_deletes(self, platform, make_runner, tmp_path):
        platform.workspaces = [Workspace(id=7, name="my-app-#42")]
        runner, _ = make_runner({"action": "closed", "number": 42})

        assert run_async(runner.run()) == 0

        assert platform.workspaces == []
        assert not (tmp_path / "output").exists()

    def test_pipeline_failure_exits_nonzero_after_reporting(
        self, platform, make_runner, tmp_path
    ):
        platform.stage_responses["test"] = [["failure"]]
        runner, registry = make_runner({"action": "synchronize", "number": 42})

        assert run_async(runner.run()) == 1

        assert platform.closed
        assert "workspace-id=5000" in (tmp_path / "output").read_text()
        assert registry.get_sample_value(
            "preview_deploy_errors_total", {"error_type": "PipelineFailure"}
        ) == 1.0
        assert registry.get_sample_value(
            "preview_deploy_reconciliations_total", {"action": "create", "status": "error"}
        ) == 1.0

    def test_transport_failure_exits_nonzero(self, platform, make_runner, transport_error):
        platform.failures["list_workspaces"] = transport_error
        runner, registry = make_runner({"action": "opened", "number": 42})

        assert run_async(runner.run()) == 1
        assert platform.closed
        assert registry.get_sample_value(
            "preview_deploy_reconciliations_total", {"action": "unknown", "status": "error"}
        ) == 1.0

    def test_unwritable_output_fails_before_pipeline(self, platform, make_runner, tmp_path):
        runner, registry = make_runner(
            {"action": "opened", "number": 42}, output_path=str(tmp_path)
        )

        assert run_async(runner.run()) == 1

        assert platform.calls_to("start_pipeline_stage") == []
        assert registry.get_sample_value(
            "preview_deploy_errors_total", {"error_type": "ReportingError"}
        ) == 1.0

    def test_push_event_uses_ref_name(self, platform, make_runner):
        runner, _ = make_runner({"ref": "refs/heads/develop"}, event_name="push", ref_name="develop")

        assert run_async(runner.run()) == 0

        [(_, request)] = platform.calls_to("create_workspace")
        assert request.name == "my-app-develop"
        assert request.initial_branch == "develop"

    def test_metrics_pushed_when_gateway_configured(self, make_runner):
        runner, _ = make_runner(
            {"action": "opened", "number": 42}, prometheus_gateway_url="pushgateway:9091"
        )

        with patch("preview_deploy.metrics.push_to_gateway") as push:
            run_async(runner.run())

        push.assert_called_once()


class TestMain:
    def test_missing_configuration_exits_1(self):
        with pytest.raises(SystemExit) as exc_info:
            main_module.main()
        assert exc_info.value.code == 1

    def test_exit_code_from_runner(self, monkeypatch):
        monkeypatch.setenv("INPUT_TOKEN", "cs-test-token")
        monkeypatch.setenv("INPUT_TEAMID", "42")
        seen = []

        class StubRunner:
            def __init__(self, settings):
                seen.append(settings)

            async def run(self):
                return 0

        monkeypatch.setattr(main_module, "DeployRunner", StubRunner)

        with pytest.raises(SystemExit) as exc_info:
            main_module.main()

        assert exc_info.value.code == 0
        assert seen[0].team_id == 42
