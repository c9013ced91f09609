# cf_provider/core/errors.py

from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional


# -----------------------------
# Base Errors
# -----------------------------

class CloudFoundryError(Exception):
    """Base class for all provider core errors.

    ``step`` names the operation step that failed (e.g. "create-deployment").
    ``warnings`` carries platform warnings returned alongside the failure.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        step: Optional[str] = None,
        warnings: Optional[Iterable[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.step = step
        self.warnings: List[str] = list(warnings or [])


# -----------------------------
# Validation Errors
# -----------------------------

class ValidationError(CloudFoundryError):
    """Invalid input detected before any remote call."""
    retryable = False


class SourceValidationError(ValidationError):
    """Source archive path missing or unreadable."""

    def __init__(self, message: str, *, detail: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.detail = detail


class EnvironmentValidationError(ValidationError):
    """Reserved or empty environment variables."""
    pass


class ProcessConfigurationError(ValidationError):
    """Instances, quotas or health check settings out of range."""
    pass


class UnsupportedLifecycleError(ValidationError):
    pass


# -----------------------------
# Platform Errors
# -----------------------------

class CloudControllerError(CloudFoundryError):
    """Cloud Controller API returned an error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        errors: Optional[List[dict]] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.errors = errors or []


class ResourceNotFoundError(CloudControllerError):
    """The requested resource does not exist (or is not visible yet)."""
    pass


class ApplicationNotFoundError(ResourceNotFoundError):
    pass


# -----------------------------
# Job / State Errors
# -----------------------------

class JobFailedError(CloudFoundryError):
    """An asynchronous job or resource reached a terminal failure state."""
    pass


class UnexpectedStateError(JobFailedError):
    """Refreshed state is neither pending nor a target state."""

    def __init__(self, state: str, pending: Iterable[str], target: Iterable[str], **kwargs):
        self.state = state
        self.pending = sorted(pending)
        self.target = sorted(target)
        super().__init__(
            f"unexpected state '{state}', wanted target '{', '.join(self.target)}'",
            **kwargs,
        )


class DeploymentFailedError(JobFailedError):
    """Deployment finalized with a reason other than DEPLOYED."""

    def __init__(self, reason: Optional[str], **kwargs):
        self.reason = reason
        super().__init__(f"deployment failed: {reason}", **kwargs)


class ProcessCrashedError(JobFailedError):
    """Every instance of a process has crashed."""

    def __init__(self, instance_count: int, **kwargs):
        self.instance_count = instance_count
        super().__init__(
            f"all {instance_count} process instances are in a crashed state",
            **kwargs,
        )


# -----------------------------
# Wait Errors
# -----------------------------

class PollTimeoutError(CloudFoundryError):
    """Resource did not reach a target state in time."""

    def __init__(self, description: str, timeout: float, last_state: str = "", **kwargs):
        self.description = description
        self.timeout = timeout
        self.last_state = last_state
        message = f"timeout while waiting for {description} ({timeout:g}s)"
        if last_state:
            message += f", last state: '{last_state}'"
        super().__init__(message, **kwargs)


class OperationCancelledError(CloudFoundryError):
    """The surrounding operation was cancelled."""
    retryable = False


# -----------------------------
# Helpers
# -----------------------------

@contextmanager
def step(name: str) -> Iterator[None]:
    """Tag any provider error raised inside the block with the step name.

    The innermost step wins, so a poll failure inside "create-build" keeps
    that name even when an outer block is also tagged.
    """
    try:
        yield
    except CloudFoundryError as e:
        if e.step is None:
            e.step = name
        raise
