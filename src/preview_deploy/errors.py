"""Error taxonomy for preview deployment reconciliation.

Every fatal condition raised by the reconciliation core derives from
DeployError so the entry point can map it to a non-zero exit status:

- ConfigurationError: malformed or missing input, raised before any remote call
- TransportError: a remote call could not be completed
- AuthorizationError: the platform rejected the token (401/403)
- WaitTimeoutError: a bounded wait exceeded its deadline
- PipelineFailure: a pipeline stage reported failure or aborted on a replica
- ReportingError: the step output or summary file could not be written
"""

from typing import List, Optional, Sequence


class DeployError(Exception):
    """Base class for all fatal reconciliation errors."""

    pass


class ConfigurationError(DeployError):
    """Raised when configuration is missing or malformed.

    Attributes:
        fields: Names of the offending configuration fields, if known.
    """

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None):
        self.fields: List[str] = list(fields or [])
        super().__init__(message)


class TransportError(DeployError):
    """Raised when a request to the workspace platform fails.

    Covers network failures, transport timeouts, non-2xx responses and
    responses whose body cannot be decoded into the expected shape.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, when a response was received.
        method: HTTP method of the failed request.
        path: API path of the failed request.
        response_body: Truncated response body, when available.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
        response_body: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.method = method
        self.path = path
        self.response_body = response_body
        super().__init__(message)


class AuthorizationError(TransportError):
    """Raised when the platform rejects the request's credentials."""

    pass


class WaitTimeoutError(DeployError, TimeoutError):
    """Raised when a bounded wait does not reach a terminal state in time.

    Attributes:
        operation: What was being waited for.
        timeout_seconds: The deadline that was exceeded.
    """

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} did not complete within {timeout_seconds:g}s")


class PipelineFailure(DeployError):
    """Raised when a pipeline stage reports failure or aborted.

    Attributes:
        stage: Name of the failed stage.
        states: Replica states observed on the failing status read.
    """

    def __init__(self, stage: str, states: Sequence[str]):
        self.stage = stage
        self.states = list(states)
        super().__init__(
            f"Pipeline stage '{stage}' failed (states: {', '.join(self.states)})"
        )


class ReportingError(DeployError):
    """Raised when the deployment result cannot be written for later steps.

    Attributes:
        path: File that could not be appended to.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to write deployment result to {path}: {reason}")
