# cf_provider/infrastructure/memory/controller.py

"""Scripted in-process Cloud Controller, for tests and dry runs."""

from collections import Counter
from threading import Lock
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple, TypeVar
from uuid import uuid4

from cf_provider.core.errors import CloudControllerError, ResourceNotFoundError
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import (
    Application,
    ApplicationState,
    Build,
    BuildState,
    Deployment,
    DeploymentStatusReason,
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

T = TypeVar("T")

DeploymentStep = Tuple[DeploymentStatusValue, Optional[str]]

DEPLOYED: DeploymentStep = (DeploymentStatusValue.FINALIZED, DeploymentStatusReason.DEPLOYED.value)
ROLLING: DeploymentStep = (DeploymentStatusValue.ACTIVE, DeploymentStatusReason.DEPLOYING.value)


def _scripted(script: Sequence[T], index: int) -> T:
    """Entry for the index-th read; the last entry repeats."""
    return script[min(index, len(script) - 1)]


class InMemoryCloudController(CloudControllerGateway):
    """
    Cloud Controller simulator driven by scripts.

    Scripts list the states returned by successive reads:
    - package_script: states of a package, per get_package call
    - build_script: states of a build, per get_build call
    - deployment_scripts: one script per deployment attempt
    - instance_script: instance states of a process, per stats call

    ``failures`` maps a method name to an error raised on every call,
    ``not_found_reads`` makes the first N reads of a kind return 404,
    ``warnings`` attaches platform warnings to a method's records.
    """

    def __init__(self):
        self._lock = Lock()

        self.applications: Dict[str, Application] = {}
        self.packages: Dict[str, Package] = {}
        self.builds: Dict[str, Build] = {}
        self.droplets: Dict[str, Droplet] = {}
        self.deployments: Dict[str, Deployment] = {}
        self.processes: Dict[str, Process] = {}
        self.app_processes: Dict[str, List[str]] = {}
        self.current_droplets: Dict[str, str] = {}
        self.environments: Dict[str, Dict[str, str]] = {}
        self.uploads: Dict[str, bytes] = {}
        self.jobs: Dict[str, str] = {}

        self.package_script: List[PackageState] = [PackageState.READY]
        self.build_script: List[BuildState] = [BuildState.STAGED]
        self.deployment_scripts: List[List[DeploymentStep]] = [[DEPLOYED]]
        self.instance_script: Optional[List[List[ProcessInstanceState]]] = None
        self.job_script: List[JobState] = [JobState.COMPLETE]
        self.process_instances: int = 1

        self.failures: Dict[str, CloudControllerError] = {}
        self.not_found_reads: Dict[str, int] = {}
        self.warnings: Dict[str, List[str]] = {}

        self.calls: Counter = Counter()
        self._reads: Counter = Counter()
        self._deployment_order: List[str] = []

    # -------------------------
    # SEEDING
    # -------------------------

    def add_application(
        self,
        name: str,
        space_guid: str = "space-1",
        lifecycle_type: LifecycleType = LifecycleType.BUILDPACK,
        state: ApplicationState = ApplicationState.STOPPED,
        droplet: Optional[Droplet] = None,
    ) -> Application:
        app = Application(
            guid=str(uuid4()),
            name=name,
            space_guid=space_guid,
            lifecycle_type=lifecycle_type,
            state=state,
        )
        with self._lock:
            self.applications[app.guid] = app
            self.environments[app.guid] = {}
            if droplet is not None:
                droplet.app_guid = app.guid
                self.droplets[droplet.guid] = droplet
                self.current_droplets[app.guid] = droplet.guid
        return self._copy(app)

    def add_droplet(self, app_guid: Optional[str] = None, **kwargs) -> Droplet:
        droplet = Droplet(guid=str(uuid4()), app_guid=app_guid, **kwargs)
        with self._lock:
            self.droplets[droplet.guid] = droplet
        return droplet

    def add_process(self, app_guid: str, process_type: str = "web") -> Process:
        with self._lock:
            return self._copy(self._new_process(app_guid, process_type))

    @property
    def created_deployments(self) -> List[str]:
        return list(self._deployment_order)

    # -------------------------
    # INTERNALS
    # -------------------------

    def _enter(self, method: str) -> List[str]:
        self.calls[method] += 1
        error = self.failures.get(method)
        if error is not None:
            raise error
        return list(self.warnings.get(method, []))

    def _read(self, kind: str, key: str, store: Dict[str, T]) -> Tuple[T, int]:
        """Return the stored record and how many times it was read before."""
        remaining = self.not_found_reads.get(kind, 0)
        if remaining > 0:
            self.not_found_reads[kind] = remaining - 1
            raise ResourceNotFoundError(f"{kind} {key} not found", status_code=404)

        record = store.get(key)
        if record is None:
            raise ResourceNotFoundError(f"{kind} {key} not found", status_code=404)

        index = self._reads[(kind, key)]
        self._reads[(kind, key)] += 1
        return record, index

    def _copy(self, record: T, warnings: Optional[List[str]] = None) -> T:
        copy = type(record)(**{k: v for k, v in vars(record).items() if k != "warnings"})
        if warnings is not None:
            copy.warnings = warnings
        return copy

    def _app(self, app_guid: str) -> Application:
        app = self.applications.get(app_guid)
        if app is None:
            raise ResourceNotFoundError(f"app {app_guid} not found", status_code=404)
        return app

    def _process(self, guid: str) -> Process:
        process = self.processes.get(guid)
        if process is None:
            raise ResourceNotFoundError(f"process {guid} not found", status_code=404)
        return process

    def _new_process(self, app_guid: str, process_type: str = "web") -> Process:
        """New process; a replacement inherits the configuration of the one it replaces."""
        existing = [
            self.processes[g] for g in self.app_processes.get(app_guid, [])
            if self.processes[g].type == process_type
        ]
        if existing:
            process = self._copy(existing[-1])
            process.guid = str(uuid4())
        else:
            process = Process(guid=str(uuid4()), type=process_type, instances=self.process_instances)
        self.processes[process.guid] = process
        self.app_processes.setdefault(app_guid, []).append(process.guid)
        return process

    # -------------------------
    # PACKAGES / BUILDS / DROPLETS
    # -------------------------

    def create_package(
        self,
        app_guid: str,
        package_type: PackageType,
        image: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Package:
        with self._lock:
            warnings = self._enter("create_package")
            self._app(app_guid)

            package = Package(
                guid=str(uuid4()),
                app_guid=app_guid,
                type=package_type,
                state=PackageState.AWAITING_UPLOAD if package_type == PackageType.BITS else PackageState.READY,
                image=image,
            )
            self.packages[package.guid] = package
            return self._copy(package, warnings)

    def upload_package_bits(self, package: Package, stream: BinaryIO, size: int) -> Package:
        with self._lock:
            warnings = self._enter("upload_package_bits")
            stored = self.packages.get(package.guid)
            if stored is None:
                raise ResourceNotFoundError(f"package {package.guid} not found", status_code=404)

            self.uploads[package.guid] = stream.read()
            stored.state = PackageState.PROCESSING_UPLOAD
            return self._copy(stored, warnings)

    def get_package(self, guid: str) -> Package:
        with self._lock:
            warnings = self._enter("get_package")
            package, index = self._read("package", guid, self.packages)
            if package.type == PackageType.BITS:
                package.state = _scripted(self.package_script, index)
            return self._copy(package, warnings)

    def create_build(self, package_guid: str) -> Build:
        with self._lock:
            warnings = self._enter("create_build")
            if package_guid not in self.packages:
                raise ResourceNotFoundError(f"package {package_guid} not found", status_code=404)

            build = Build(guid=str(uuid4()), package_guid=package_guid)
            self.builds[build.guid] = build
            return self._copy(build, warnings)

    def get_build(self, guid: str) -> Build:
        with self._lock:
            warnings = self._enter("get_build")
            build, index = self._read("build", guid, self.builds)

            if build.state == BuildState.STAGING:
                build.state = _scripted(self.build_script, index)
                if build.state == BuildState.STAGED:
                    package = self.packages[build.package_guid]
                    droplet = Droplet(
                        guid=str(uuid4()),
                        app_guid=package.app_guid,
                        state=DropletState.STAGED,
                        image=package.image,
                    )
                    self.droplets[droplet.guid] = droplet
                    build.droplet_guid = droplet.guid
                elif build.state == BuildState.FAILED:
                    build.error = "StagingError - staging failed"

            return self._copy(build, warnings)

    def get_droplet(self, guid: str) -> Droplet:
        with self._lock:
            warnings = self._enter("get_droplet")
            droplet = self.droplets.get(guid)
            if droplet is None:
                raise ResourceNotFoundError(f"droplet {guid} not found", status_code=404)
            return self._copy(droplet, warnings)

    def get_application_current_droplet(self, app_guid: str) -> Optional[Droplet]:
        with self._lock:
            warnings = self._enter("get_application_current_droplet")
            droplet_guid = self.current_droplets.get(app_guid)
            if droplet_guid is None:
                return None
            return self._copy(self.droplets[droplet_guid], warnings)

    def set_application_droplet(self, app_guid: str, droplet_guid: str) -> None:
        with self._lock:
            self._enter("set_application_droplet")
            self._app(app_guid)
            if droplet_guid not in self.droplets:
                raise ResourceNotFoundError(f"droplet {droplet_guid} not found", status_code=404)
            self.current_droplets[app_guid] = droplet_guid

    # -------------------------
    # DEPLOYMENTS / PROCESSES
    # -------------------------

    def create_deployment(self, app_guid: str, droplet_guid: str) -> str:
        with self._lock:
            self._enter("create_deployment")
            self._app(app_guid)

            process = self._new_process(app_guid)
            deployment = Deployment(
                guid=str(uuid4()),
                app_guid=app_guid,
                droplet_guid=droplet_guid,
                status_value=DeploymentStatusValue.ACTIVE,
                status_reason=DeploymentStatusReason.DEPLOYING.value,
                new_processes=[ProcessRef(guid=process.guid, type=process.type)],
            )
            self.deployments[deployment.guid] = deployment
            self._deployment_order.append(deployment.guid)
            return deployment.guid

    def get_deployment(self, guid: str) -> Deployment:
        with self._lock:
            warnings = self._enter("get_deployment")
            deployment, index = self._read("deployment", guid, self.deployments)

            if not deployment.is_finalized():
                attempt = self._deployment_order.index(guid)
                value, reason = _scripted(_scripted(self.deployment_scripts, attempt), index)
                deployment.status_value = value
                deployment.status_reason = reason

                if deployment.is_deployed():
                    self.current_droplets[deployment.app_guid] = deployment.droplet_guid
                    self.applications[deployment.app_guid].state = ApplicationState.STARTED

            return self._copy(deployment, warnings)

    def get_application_deployments(self, app_guid: str) -> List[Deployment]:
        with self._lock:
            warnings = self._enter("get_application_deployments")
            return [
                self._copy(self.deployments[guid], warnings)
                for guid in self._deployment_order
                if self.deployments[guid].app_guid == app_guid
            ]

    def get_new_deployment_processes(self, app_guid: str, deployment_guid: str) -> List[Process]:
        with self._lock:
            warnings = self._enter("get_new_deployment_processes")
            deployment = self.deployments.get(deployment_guid)
            if deployment is None:
                raise ResourceNotFoundError(f"deployment {deployment_guid} not found", status_code=404)
            return [self._copy(self.processes[ref.guid], warnings) for ref in deployment.new_processes]

    def get_application_processes(self, app_guid: str) -> List[Process]:
        with self._lock:
            warnings = self._enter("get_application_processes")
            self._app(app_guid)
            return [self._copy(self.processes[g], warnings) for g in self.app_processes.get(app_guid, [])]

    def get_process_instances(self, process_guid: str) -> List[ProcessInstance]:
        with self._lock:
            self._enter("get_process_instances")
            process, index = self._read("process", process_guid, self.processes)

            if self.instance_script is None:
                states = [ProcessInstanceState.RUNNING] * process.instances
            else:
                states = _scripted(self.instance_script, index)

            return [ProcessInstance(index=i, state=s) for i, s in enumerate(states)]

    def update_process(self, process: Process) -> Process:
        with self._lock:
            warnings = self._enter("update_process")
            stored = self._process(process.guid)
            stored.command = process.command
            stored.health_check_type = process.health_check_type
            stored.health_check_endpoint = process.health_check_endpoint
            stored.health_check_timeout = process.health_check_timeout
            return self._copy(stored, warnings)

    def scale_process(
        self,
        process_guid: str,
        instances: Optional[int] = None,
        memory_in_mb: Optional[int] = None,
        disk_in_mb: Optional[int] = None,
    ) -> Process:
        with self._lock:
            warnings = self._enter("scale_process")
            stored = self._process(process_guid)
            if instances is not None:
                stored.instances = instances
            if memory_in_mb is not None:
                stored.memory_in_mb = memory_in_mb
            if disk_in_mb is not None:
                stored.disk_in_mb = disk_in_mb
            return self._copy(stored, warnings)

    # -------------------------
    # APPLICATIONS
    # -------------------------

    def get_application(self, app_guid: str) -> Optional[Application]:
        with self._lock:
            warnings = self._enter("get_application")
            app = self.applications.get(app_guid)
            if app is None:
                return None
            return self._copy(app, warnings)

    def create_application(self, app: Application) -> Application:
        with self._lock:
            warnings = self._enter("create_application")
            created = self._copy(app)
            created.guid = str(uuid4())
            created.state = ApplicationState.STOPPED
            self.applications[created.guid] = created
            self.environments[created.guid] = {}
            return self._copy(created, warnings)

    def update_application(self, app: Application) -> Application:
        with self._lock:
            warnings = self._enter("update_application")
            stored = self._app(app.guid)
            stored.name = app.name
            stored.buildpacks = list(app.buildpacks)
            stored.stack = app.stack
            return self._copy(stored, warnings)

    def start_application(self, app_guid: str) -> Application:
        with self._lock:
            warnings = self._enter("start_application")
            app = self._app(app_guid)
            if app_guid not in self.current_droplets:
                raise CloudControllerError(
                    "Assign a droplet before starting this app.",
                    status_code=422,
                    warnings=warnings,
                )
            if not self.app_processes.get(app_guid):
                self._new_process(app_guid)
            app.state = ApplicationState.STARTED
            return self._copy(app, warnings)

    def stop_application(self, app_guid: str) -> Application:
        with self._lock:
            warnings = self._enter("stop_application")
            app = self._app(app_guid)
            app.state = ApplicationState.STOPPED
            return self._copy(app, warnings)

    def get_application_environment(self, app_guid: str) -> Dict[str, str]:
        with self._lock:
            self._enter("get_application_environment")
            self._app(app_guid)
            return dict(self.environments.get(app_guid, {}))

    def update_application_environment(
        self,
        app_guid: str,
        variables: Dict[str, Optional[str]],
    ) -> Dict[str, str]:
        with self._lock:
            self._enter("update_application_environment")
            self._app(app_guid)
            env = self.environments.setdefault(app_guid, {})
            for key, value in variables.items():
                if value is None:
                    env.pop(key, None)
                else:
                    env[key] = value
            return dict(env)

    def delete_application(self, app_guid: str) -> str:
        with self._lock:
            self._enter("delete_application")
            self._app(app_guid)

            del self.applications[app_guid]
            self.current_droplets.pop(app_guid, None)

            job_url = f"memory://v3/jobs/{uuid4()}"
            self.jobs[job_url] = app_guid
            return job_url

    # -------------------------
    # JOBS
    # -------------------------

    def get_job(self, job_url: str) -> Job:
        with self._lock:
            warnings = self._enter("get_job")
            _, index = self._read("job", job_url, self.jobs)
            state = _scripted(self.job_script, index)

            errors = []
            if state == JobState.FAILED:
                errors = [{"title": "CF-JobFailed", "detail": "job failed"}]

            return Job(url=job_url, state=state, errors=errors, warnings=warnings)
