"""Deployment configuration using pydantic-settings.

This module defines the DeploySettings class that reads configuration from
the environment variables a GitHub Actions runner provides: action inputs
(INPUT_*) and the workflow context (GITHUB_*). The settings object is built
once at the entry point and passed explicitly to every component; nothing
else in the package reads the process environment.
"""

from typing import Any, Dict, List

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from preview_deploy.errors import ConfigurationError

DEFAULT_API_URL = "https://codesphere.com/api"
DEFAULT_URL_TEMPLATE = "https://{workspace_id}-3000.2.codesphere.com/"
LOG_FORMATS = ("console", "json")


def parse_env_block(block: str) -> Dict[str, str]:
    """Parse a multiline KEY=VALUE block into an ordered mapping.

    Blank lines and lines without a key before the first '=' are skipped.
    Later duplicates overwrite earlier ones.

    Args:
        block: Raw multiline input.

    Returns:
        Mapping of variable name to value, in first-seen key order.
    """
    env_vars: Dict[str, str] = {}
    for line in block.splitlines():
        line = line.strip()
        index = line.find("=")
        if index > 0:
            env_vars[line[:index]] = line[index + 1:]
    return env_vars


class DeploySettings(BaseSettings):
    """Preview deployment configuration from environment variables.

    Required fields (must be set via environment variables):
    - token (INPUT_TOKEN): Codesphere API token
    - team_id (INPUT_TEAMID): Team owning the preview workspaces
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Platform
    # -------------------------------------------------------------------------
    api_url: str = Field(DEFAULT_API_URL, validation_alias="INPUT_APIURL")
    token: str = Field(..., validation_alias="INPUT_TOKEN")
    team_id: int = Field(..., validation_alias="INPUT_TEAMID")
    plan_id: int = Field(8, validation_alias="INPUT_PLANID")
    vpn_config: str = Field("", validation_alias="INPUT_VPNCONFIG")
    request_timeout_seconds: float = Field(
        30.0, validation_alias="INPUT_REQUESTTIMEOUT"
    )

    # -------------------------------------------------------------------------
    # Workspace contents
    # -------------------------------------------------------------------------
    # Explicit branch override; wins over the pull request head branch
    branch: str = Field("", validation_alias="INPUT_BRANCH")
    env_block: str = Field("", validation_alias="INPUT_ENV")
    stages_raw: str = Field("prepare run", validation_alias="INPUT_STAGES")
    fire_and_forget_stage: str = Field(
        "run", validation_alias="INPUT_FIREANDFORGETSTAGE"
    )
    url_template: str = Field(
        DEFAULT_URL_TEMPLATE, validation_alias="INPUT_URLTEMPLATE"
    )

    # -------------------------------------------------------------------------
    # Waiting
    # -------------------------------------------------------------------------
    poll_interval_seconds: float = Field(5.0, validation_alias="INPUT_POLLINTERVAL")
    ready_timeout_seconds: float = Field(300.0, validation_alias="INPUT_READYTIMEOUT")
    stage_timeout_seconds: float = Field(
        1800.0, validation_alias="INPUT_STAGETIMEOUT"
    )

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------
    prometheus_gateway_url: str = Field(
        "", validation_alias="INPUT_PROMETHEUSGATEWAY"
    )
    log_format: str = Field("console", validation_alias="INPUT_LOGFORMAT")
    log_level: str = Field("INFO", validation_alias="INPUT_LOGLEVEL")

    # -------------------------------------------------------------------------
    # GitHub workflow context
    # -------------------------------------------------------------------------
    server_url: str = Field("https://github.com", validation_alias="GITHUB_SERVER_URL")
    repository: str = Field("", validation_alias="GITHUB_REPOSITORY")
    event_name: str = Field("", validation_alias="GITHUB_EVENT_NAME")
    event_path: str = Field("", validation_alias="GITHUB_EVENT_PATH")
    head_ref: str = Field("", validation_alias="GITHUB_HEAD_REF")
    ref_name: str = Field("main", validation_alias="GITHUB_REF_NAME")
    output_path: str = Field("", validation_alias="GITHUB_OUTPUT")
    summary_path: str = Field("", validation_alias="GITHUB_STEP_SUMMARY")

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate that the API token is not empty."""
        if not v or not v.strip():
            raise ValueError("token cannot be empty")
        return v

    @field_validator("team_id", "plan_id")
    @classmethod
    def validate_positive_id(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate that the API URL is an HTTP(S) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("url_template")
    @classmethod
    def validate_url_template(cls, v: str) -> str:
        """Validate that the template formats with only {workspace_id}."""
        try:
            v.format(workspace_id=0)
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(
                f"url_template may only reference {{workspace_id}}: {exc!r}"
            ) from exc
        return v

    @field_validator(
        "poll_interval_seconds",
        "ready_timeout_seconds",
        "stage_timeout_seconds",
        "request_timeout_seconds",
    )
    @classmethod
    def validate_positive_duration(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return v

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------
    @property
    def env_vars(self) -> Dict[str, str]:
        """Environment variables to apply to the workspace."""
        return parse_env_block(self.env_block)

    @property
    def stages(self) -> List[str]:
        """Pipeline stages to run, in order."""
        return self.stages_raw.split()

    @property
    def clone_url(self) -> str:
        """Git URL the workspace clones the repository from."""
        return f"{self.server_url.rstrip('/')}/{self.repository}.git"


def load_settings(**overrides: Any) -> DeploySettings:
    """Create and return a DeploySettings instance.

    Reads the environment, applying any keyword overrides on top. Validation
    problems are reported as a ConfigurationError naming the bad fields.

    Returns:
        DeploySettings: Validated settings instance.

    Raises:
        ConfigurationError: If required fields are missing or invalid.
    """
    try:
        return DeploySettings(**overrides)
    except ValidationError as exc:
        fields = [
            ".".join(str(part) for part in error["loc"]) for error in exc.errors()
        ]
        details = "; ".join(
            f"{field}: {error['msg']}" for field, error in zip(fields, exc.errors())
        )
        raise ConfigurationError(
            f"Invalid configuration: {details}", fields=fields
        ) from exc


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def describe_settings(settings: DeploySettings) -> Dict[str, Any]:
    """Summarise settings for startup logging with secrets redacted.

    Environment variable values are never included, only their names.
    """
    return {
        "api_url": settings.api_url,
        "token": _redact_secret(settings.token),
        "team_id": settings.team_id,
        "plan_id": settings.plan_id,
        "repository": settings.repository,
        "event_name": settings.event_name,
        "branch_override": settings.branch or None,
        "env_var_names": sorted(settings.env_vars),
        "vpn_config": settings.vpn_config or None,
        "stages": settings.stages,
        "poll_interval_seconds": settings.poll_interval_seconds,
        "ready_timeout_seconds": settings.ready_timeout_seconds,
        "stage_timeout_seconds": settings.stage_timeout_seconds,
    }
