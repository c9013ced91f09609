"""Core domain models for Cloud Controller v3 resources."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


# ============================================
# ENUMS
# ============================================

class LifecycleType(Enum):
    """How an application is staged."""
    BUILDPACK = "buildpack"
    DOCKER = "docker"
    KPACK = "kpack"


class ApplicationState(Enum):
    """Desired run state of an application."""
    STARTED = "STARTED"
    STOPPED = "STOPPED"


class PackageType(Enum):
    """Package source type."""
    BITS = "bits"
    DOCKER = "docker"


class PackageState(Enum):
    """Package lifecycle."""
    AWAITING_UPLOAD = "AWAITING_UPLOAD"
    PROCESSING_UPLOAD = "PROCESSING_UPLOAD"
    COPYING = "COPYING"
    READY = "READY"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class BuildState(Enum):
    """Build (staging) lifecycle."""
    STAGING = "STAGING"
    STAGED = "STAGED"
    FAILED = "FAILED"


class DropletState(Enum):
    """Droplet lifecycle."""
    AWAITING_UPLOAD = "AWAITING_UPLOAD"
    PROCESSING_UPLOAD = "PROCESSING_UPLOAD"
    STAGED = "STAGED"
    COPYING = "COPYING"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class DeploymentStatusValue(Enum):
    """Deployment status value. ACTIVE and DEPLOYING both mean rolling."""
    ACTIVE = "ACTIVE"
    DEPLOYING = "DEPLOYING"
    FINALIZED = "FINALIZED"


class DeploymentStatusReason(Enum):
    """Why a deployment is in its current status."""
    DEPLOYING = "DEPLOYING"
    CANCELING = "CANCELING"
    DEPLOYED = "DEPLOYED"
    CANCELED = "CANCELED"
    SUPERSEDED = "SUPERSEDED"
    DEGENERATE = "DEGENERATE"


class ProcessInstanceState(Enum):
    """State of a single process instance."""
    RUNNING = "RUNNING"
    CRASHED = "CRASHED"
    STARTING = "STARTING"
    DOWN = "DOWN"
    OTHER = "OTHER"

    @classmethod
    def _missing_(cls, value):
        return cls.OTHER


class JobState(Enum):
    """Asynchronous job state."""
    PROCESSING = "PROCESSING"
    POLLING = "POLLING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


# ============================================
# RESOURCES
# ============================================

@dataclass
class Application:
    """Parent entity owning packages, builds, droplets and deployments."""

    guid: str
    name: str
    space_guid: str = ""
    lifecycle_type: LifecycleType = LifecycleType.BUILDPACK
    state: ApplicationState = ApplicationState.STOPPED
    buildpacks: List[str] = field(default_factory=list)
    stack: Optional[str] = None

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)


@dataclass
class Package:
    """Uploaded source or container image reference awaiting staging."""

    guid: str
    app_guid: str
    type: PackageType
    state: PackageState = PackageState.AWAITING_UPLOAD
    image: Optional[str] = None

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)


@dataclass
class Build:
    """A staging attempt converting a package into a droplet."""

    guid: str
    package_guid: str
    state: BuildState = BuildState.STAGING
    droplet_guid: Optional[str] = None
    error: Optional[str] = None

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)


@dataclass
class Droplet:
    """A staged, runnable application artifact."""

    guid: str
    app_guid: Optional[str] = None
    state: DropletState = DropletState.STAGED
    buildpacks: List[str] = field(default_factory=list)
    stack: Optional[str] = None
    image: Optional[str] = None

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)


@dataclass
class ProcessRef:
    """Lightweight reference to a process created by a deployment."""
    guid: str
    type: str


@dataclass
class Deployment:
    """Rolling replacement of an application's processes onto a droplet."""

    guid: str
    app_guid: str
    droplet_guid: Optional[str] = None
    status_value: DeploymentStatusValue = DeploymentStatusValue.ACTIVE
    status_reason: Optional[str] = None
    new_processes: List[ProcessRef] = field(default_factory=list)

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)

    def is_finalized(self) -> bool:
        return self.status_value == DeploymentStatusValue.FINALIZED

    def is_deployed(self) -> bool:
        return (
            self.is_finalized()
            and self.status_reason == DeploymentStatusReason.DEPLOYED.value
        )


@dataclass
class Process:
    """A named runnable unit of an application (e.g. "web")."""

    guid: str
    type: str
    instances: int = 1
    command: Optional[str] = None
    memory_in_mb: Optional[int] = None
    disk_in_mb: Optional[int] = None
    health_check_type: Optional[str] = None
    health_check_endpoint: Optional[str] = None
    health_check_timeout: Optional[int] = None

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)


@dataclass
class ProcessInstance:
    """One replica of a process. Enumerated fresh on every poll."""
    index: int
    state: ProcessInstanceState


@dataclass
class Job:
    """Asynchronous Cloud Controller job."""

    url: str
    state: JobState
    errors: List[Dict[str, str]] = field(default_factory=list)

    warnings: List[str] = field(default_factory=list, compare=False, repr=False)

    def has_failed(self) -> bool:
        return self.state == JobState.FAILED

    def error_detail(self) -> Optional[str]:
        """First platform error detail, if any."""
        if not self.errors:
            return None
        first = self.errors[0]
        return first.get("detail") or first.get("title")


# ============================================
# ROLLOUT ATTEMPTS
# ============================================

class AttemptStage(Enum):
    """Stages of a single rollout attempt."""
    CREATING = "CREATING"
    DEPLOYING = "DEPLOYING"
    DISCOVERING = "DISCOVERING"
    STABILIZING = "STABILIZING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass
class DeploymentAttempt:
    """Outcome of one create-deploy-stabilize attempt."""

    number: int
    stage: AttemptStage = AttemptStage.CREATING
    deployment_guid: Optional[str] = None
    deployment: Optional[Deployment] = None
    error: Optional[Exception] = None

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == AttemptStage.SUCCEEDED
