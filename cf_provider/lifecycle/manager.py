# cf_provider/lifecycle/manager.py
"""Application lifecycle manager - decides when to stage and deploy."""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Dict, List, Optional, Set

from cf_provider.config import ProviderSettings
from cf_provider.core.context import OperationContext
from cf_provider.core.errors import step
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import (
    Application,
    ApplicationState,
    Deployment,
    Droplet,
    LifecycleType,
)
from cf_provider.core.validation import validate_environment, validate_process_configuration
from cf_provider.orchestrator.deployment_orchestrator import DeploymentOrchestrator
from cf_provider.poller.poller import StatePoller
from cf_provider.poller.states import job_state
from cf_provider.staging.pipeline import StagingPipeline
from cf_provider.staging.sources import staging_request_for

logger = logging.getLogger(__name__)

PROCESS_FIELDS = (
    "command",
    "instances",
    "memory_in_mb",
    "disk_in_mb",
    "health_check_type",
    "health_check_endpoint",
    "health_check_timeout",
)
SCALE_FIELDS = ("instances", "memory_in_mb", "disk_in_mb")


@dataclass
class DesiredApplication:
    """Configured (desired) application inputs."""

    name: str
    lifecycle_type: LifecycleType = LifecycleType.BUILDPACK
    state: ApplicationState = ApplicationState.STARTED

    # buildpack
    buildpacks: List[str] = field(default_factory=list)
    stack: Optional[str] = None
    source_code_path: Optional[str] = None
    source_code_hash: Optional[str] = None

    # docker
    docker_image: Optional[str] = None
    docker_username: Optional[str] = None
    docker_password: Optional[str] = field(default=None, repr=False)

    environment: Dict[str, str] = field(default_factory=dict)

    # web process
    command: Optional[str] = None
    instances: Optional[int] = None
    memory_in_mb: Optional[int] = None
    disk_in_mb: Optional[int] = None
    health_check_type: Optional[str] = None
    health_check_endpoint: Optional[str] = None
    health_check_timeout: Optional[int] = None

    def process_configuration(self) -> Dict[str, object]:
        """Web process settings that are set."""
        return {
            name: getattr(self, name)
            for name in PROCESS_FIELDS
            if getattr(self, name) is not None
        }

    def changed_fields(self, previous: Optional["DesiredApplication"] = None) -> Set[str]:
        """Names of fields that differ from the previous configuration.

        Without a previous configuration every configured field counts.
        """
        changed = set()
        for f in fields(self):
            value = getattr(self, f.name)
            if previous is None:
                if value not in (None, "", [], {}):
                    changed.add(f.name)
            elif value != getattr(previous, f.name):
                changed.add(f.name)
        return changed


@dataclass
class UpdateResult:
    exists: bool
    application: Optional[Application] = None
    droplet: Optional[Droplet] = None
    deployment: Optional[Deployment] = None


class ApplicationLifecycleManager:
    """
    Top-level coordinator called by the resource layer.

    Update flow:
    1. Read the application (gone -> warning, exists=False)
    2. Apply changed web process settings (command, health check, scale)
    3. Apply changed environment variables
    4. Stage a new droplet when staging inputs changed
    5. Deploy it (STARTED) or set it current (otherwise)
    6. Reconcile the run state
    """

    def __init__(
        self,
        gateway: CloudControllerGateway,
        settings: ProviderSettings,
        pipeline: StagingPipeline,
        orchestrator: DeploymentOrchestrator,
    ):
        self._gateway = gateway
        self._settings = settings
        self._pipeline = pipeline
        self._orchestrator = orchestrator

    # -------------------------
    # READ
    # -------------------------

    def read(self, app_guid: str, ctx: OperationContext) -> Optional[Application]:
        with step("get-application"):
            app = self._gateway.get_application(app_guid)

        if app is None:
            ctx.diagnostics.add_warning(
                f"app ({app_guid}) not found, removing from state",
                "get-application",
            )
            return None

        return ctx.note("get-application", app)

    # -------------------------
    # CREATE
    # -------------------------

    def create(self, space_guid: str, desired: DesiredApplication, ctx: OperationContext) -> UpdateResult:
        """Create the application STOPPED, then converge it via update."""
        validate_environment(desired.environment)
        validate_process_configuration(desired.process_configuration())

        with step("create-application"):
            app = ctx.note(
                "create-application",
                self._gateway.create_application(
                    Application(
                        guid="",
                        name=desired.name,
                        space_guid=space_guid,
                        lifecycle_type=desired.lifecycle_type,
                        state=ApplicationState.STOPPED,
                    )
                ),
            )

        logger.info(f"[{app.name}] created application {app.guid}")
        return self.update(app.guid, desired, ctx)

    # -------------------------
    # UPDATE
    # -------------------------

    def update(
        self,
        app_guid: str,
        desired: DesiredApplication,
        ctx: OperationContext,
        previous: Optional[DesiredApplication] = None,
    ) -> UpdateResult:
        validate_environment(desired.environment)
        validate_process_configuration(desired.process_configuration())

        app = self.read(app_guid, ctx)
        if app is None:
            return UpdateResult(exists=False)

        changed = desired.changed_fields(previous)
        logger.info(f"[{app.name}] changed fields: {sorted(changed) or 'none'}")

        if previous is not None and "name" in changed:
            app.name = desired.name
            with step("update-application"):
                app = ctx.note("update-application", self._gateway.update_application(app))

        if changed.intersection(PROCESS_FIELDS):
            self._apply_process_configuration(app, desired, changed, ctx)

        if "environment" in changed:
            self._apply_environment(app, desired.environment, ctx)

        with step("get-current-droplet"):
            current_droplet = self._gateway.get_application_current_droplet(app.guid)
        desired_droplet = current_droplet

        source = staging_request_for(app.lifecycle_type, desired, changed)
        if source is not None:
            desired_droplet = self._pipeline.stage_source(app.guid, source, ctx)

        deployment = None
        current_guid = current_droplet.guid if current_droplet else None

        if desired_droplet is not None and desired_droplet.guid != current_guid:
            if desired.state == ApplicationState.STARTED:
                deployment = self._orchestrator.deploy(
                    app,
                    desired_droplet,
                    ctx,
                    max_attempts=self._settings.update_max_deploy_attempts,
                )
            else:
                logger.info(f"[{app.name}] setting current droplet {desired_droplet.guid}")
                with step("set-current-droplet"):
                    self._gateway.set_application_droplet(app.guid, desired_droplet.guid)

        app = self._orchestrator.reconcile(
            app.guid,
            desired.state,
            desired_droplet.guid if desired_droplet else None,
            ctx,
        )

        return UpdateResult(
            exists=True,
            application=app,
            droplet=desired_droplet,
            deployment=deployment,
        )

    def _apply_process_configuration(
        self,
        app: Application,
        desired: DesiredApplication,
        changed: Set[str],
        ctx: OperationContext,
    ) -> None:
        """Apply command, health check and scale to the web process before any rollout."""
        with step("get-application-processes"):
            processes = self._gateway.get_application_processes(app.guid)

        web = next((p for p in processes if p.type == "web"), None)
        if web is None:
            logger.info(f"[{app.name}] no web process yet, process settings apply on first start")
            return

        if changed.difference(SCALE_FIELDS).intersection(PROCESS_FIELDS):
            configured = replace(
                web,
                command=desired.command,
                health_check_type=desired.health_check_type or web.health_check_type,
                health_check_endpoint=desired.health_check_endpoint,
                health_check_timeout=desired.health_check_timeout or web.health_check_timeout,
            )
            if configured.health_check_type == "http" and not configured.health_check_endpoint:
                configured.health_check_endpoint = "/"

            logger.info(f"[{app.name}] updating web process command and health check")
            with step("update-process"):
                ctx.note("update-process", self._gateway.update_process(configured))

        if changed.intersection(SCALE_FIELDS):
            logger.info(
                f"[{app.name}] scaling web process: instances={desired.instances} "
                f"memory={desired.memory_in_mb}M disk={desired.disk_in_mb}M"
            )
            with step("scale-process"):
                ctx.note(
                    "scale-process",
                    self._gateway.scale_process(
                        web.guid,
                        instances=desired.instances,
                        memory_in_mb=desired.memory_in_mb,
                        disk_in_mb=desired.disk_in_mb,
                    ),
                )

    def _apply_environment(self, app: Application, variables: Dict[str, str], ctx: OperationContext) -> None:
        """Replace user-provided variables; ones no longer desired are unset."""
        with step("get-current-environment"):
            current = self._gateway.get_application_environment(app.guid)

        patch: Dict[str, Optional[str]] = {key: None for key in current}
        patch.update(variables)

        logger.info(f"[{app.name}] updating {len(variables)} environment variables")

        with step("update-environment"):
            self._gateway.update_application_environment(app.guid, patch)

    # -------------------------
    # DELETE
    # -------------------------

    def delete(self, app_guid: str, ctx: OperationContext) -> None:
        with step("delete-application"):
            job_url = self._gateway.delete_application(app_guid)

            StatePoller(self._settings.job_poll(ctx.timeout), ctx).wait(
                job_state(self._gateway, job_url),
                description=f"deletion of app {app_guid}",
            )

        logger.info(f"[delete] app {app_guid} deleted")
