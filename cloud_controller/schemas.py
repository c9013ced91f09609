"""Pydantic schemas for Cloud Controller v3 responses."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from cf_provider.core.models import (
    Application,
    ApplicationState,
    Build,
    BuildState,
    Deployment,
    DeploymentStatusValue,
    Droplet,
    DropletState,
    Job,
    JobState,
    LifecycleType,
    Package,
    PackageState,
    PackageType,
    Process,
    ProcessInstance,
    ProcessInstanceState,
    ProcessRef,
)


# ============================================
# Shared
# ============================================

class Resource(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GuidRef(Resource):
    guid: str


class Relationship(Resource):
    data: Optional[GuidRef] = None


class Link(Resource):
    href: str


class Pagination(Resource):
    total_results: int = 0
    next: Optional[Link] = None


def related_guid(relationships: Dict[str, Relationship], name: str) -> Optional[str]:
    relationship = relationships.get(name)
    if relationship is None or relationship.data is None:
        return None
    return relationship.data.guid


# ============================================
# Applications
# ============================================

class LifecycleData(Resource):
    buildpacks: List[str] = Field(default_factory=list)
    stack: Optional[str] = None


class Lifecycle(Resource):
    type: LifecycleType = LifecycleType.BUILDPACK
    data: LifecycleData = Field(default_factory=LifecycleData)


class ApplicationSchema(Resource):
    guid: str
    name: str
    state: ApplicationState
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    relationships: Dict[str, Relationship] = Field(default_factory=dict)

    def to_domain(self, warnings: List[str]) -> Application:
        return Application(
            guid=self.guid,
            name=self.name,
            space_guid=related_guid(self.relationships, "space") or "",
            lifecycle_type=self.lifecycle.type,
            state=self.state,
            buildpacks=list(self.lifecycle.data.buildpacks),
            stack=self.lifecycle.data.stack,
            warnings=warnings,
        )


class EnvironmentVariablesSchema(Resource):
    var: Dict[str, str] = Field(default_factory=dict)


# ============================================
# Packages / Builds / Droplets
# ============================================

class PackageData(Resource):
    image: Optional[str] = None


class PackageSchema(Resource):
    guid: str
    type: PackageType
    state: PackageState
    data: PackageData = Field(default_factory=PackageData)
    relationships: Dict[str, Relationship] = Field(default_factory=dict)

    def to_domain(self, warnings: List[str], app_guid: str = "") -> Package:
        return Package(
            guid=self.guid,
            app_guid=related_guid(self.relationships, "app") or app_guid,
            type=self.type,
            state=self.state,
            image=self.data.image,
            warnings=warnings,
        )


class BuildSchema(Resource):
    guid: str
    state: BuildState
    error: Optional[str] = None
    package: GuidRef
    droplet: Optional[GuidRef] = None

    def to_domain(self, warnings: List[str]) -> Build:
        return Build(
            guid=self.guid,
            package_guid=self.package.guid,
            state=self.state,
            droplet_guid=self.droplet.guid if self.droplet else None,
            error=self.error,
            warnings=warnings,
        )


class DropletBuildpack(Resource):
    name: str


class DropletSchema(Resource):
    guid: str
    state: DropletState
    buildpacks: Optional[List[DropletBuildpack]] = None
    stack: Optional[str] = None
    image: Optional[str] = None
    relationships: Dict[str, Relationship] = Field(default_factory=dict)

    def to_domain(self, warnings: List[str], app_guid: Optional[str] = None) -> Droplet:
        return Droplet(
            guid=self.guid,
            app_guid=related_guid(self.relationships, "app") or app_guid,
            state=self.state,
            buildpacks=[b.name for b in self.buildpacks or []],
            stack=self.stack,
            image=self.image,
            warnings=warnings,
        )


# ============================================
# Deployments / Processes
# ============================================

class DeploymentStatus(Resource):
    value: DeploymentStatusValue
    reason: Optional[str] = None


class NewProcess(Resource):
    guid: str
    type: str


class DeploymentSchema(Resource):
    guid: str
    status: DeploymentStatus
    droplet: Optional[GuidRef] = None
    new_processes: List[NewProcess] = Field(default_factory=list)
    relationships: Dict[str, Relationship] = Field(default_factory=dict)

    def to_domain(self, warnings: List[str]) -> Deployment:
        return Deployment(
            guid=self.guid,
            app_guid=related_guid(self.relationships, "app") or "",
            droplet_guid=self.droplet.guid if self.droplet else None,
            status_value=self.status.value,
            status_reason=self.status.reason,
            new_processes=[ProcessRef(guid=p.guid, type=p.type) for p in self.new_processes],
            warnings=warnings,
        )


class HealthCheckData(Resource):
    timeout: Optional[int] = None
    endpoint: Optional[str] = None


class HealthCheck(Resource):
    type: Optional[str] = None
    data: HealthCheckData = Field(default_factory=HealthCheckData)


class ProcessSchema(Resource):
    guid: str
    type: str
    instances: int = 0
    command: Optional[str] = None
    memory_in_mb: Optional[int] = None
    disk_in_mb: Optional[int] = None
    health_check: HealthCheck = Field(default_factory=HealthCheck)

    def to_domain(self, warnings: List[str]) -> Process:
        return Process(
            guid=self.guid,
            type=self.type,
            instances=self.instances,
            command=self.command,
            memory_in_mb=self.memory_in_mb,
            disk_in_mb=self.disk_in_mb,
            health_check_type=self.health_check.type,
            health_check_endpoint=self.health_check.data.endpoint,
            health_check_timeout=self.health_check.data.timeout,
            warnings=warnings,
        )


class ProcessStatSchema(Resource):
    index: int
    state: str

    def to_domain(self) -> ProcessInstance:
        return ProcessInstance(index=self.index, state=ProcessInstanceState(self.state))


class ProcessStatsSchema(Resource):
    resources: List[ProcessStatSchema] = Field(default_factory=list)


# ============================================
# Jobs
# ============================================

class JobSchema(Resource):
    guid: str
    state: JobState
    errors: List[Dict[str, Any]] = Field(default_factory=list)

    def to_domain(self, url: str, warnings: List[str]) -> Job:
        return Job(
            url=url,
            state=self.state,
            errors=[{k: str(v) for k, v in e.items()} for e in self.errors],
            warnings=warnings,
        )


# ============================================
# Lists
# ============================================

class ListPage(Resource):
    pagination: Pagination = Field(default_factory=Pagination)
    resources: List[Dict[str, Any]] = Field(default_factory=list)
