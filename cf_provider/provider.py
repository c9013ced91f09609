# cf_provider/provider.py
"""Provider facade - entry points for the resource layer.

Every entry point returns an OperationResult. Provider errors raised
inside the core are converted into diagnostics here and never escape.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, TypeVar

from cf_provider.core.context import OperationContext
from cf_provider.core.diagnostics import Diagnostics
from cf_provider.core.errors import (
    ApplicationNotFoundError,
    CloudFoundryError,
    ResourceNotFoundError,
    step,
)
from cf_provider.core.models import Application, ApplicationState, Deployment, Droplet
from cf_provider.lifecycle.manager import DesiredApplication, UpdateResult
from cf_provider.session import Session
from cf_provider.staging.sources import SourceSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    value: Optional[T] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def ok(self) -> bool:
        return not self.diagnostics.has_error()


class Provider:
    def __init__(self, session: Session):
        self._session = session
        self._gateway = session.gateway

    # -------------------------
    # STAGING / DEPLOYMENT
    # -------------------------

    def stage_source(
        self,
        app_guid: str,
        source: SourceSpec,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[Droplet]:
        return self._run(
            "stage-source",
            lambda c: self._session.pipeline.stage_source(app_guid, source, c),
            ctx,
        )

    def deploy(
        self,
        app_guid: str,
        droplet_guid: str,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[Deployment]:
        """Roll the app onto the droplet, then make sure it is STARTED."""

        def operation(c: OperationContext) -> Optional[Deployment]:
            with step("get-desired-droplet-for-deployment"):
                droplet = c.note(
                    "get-desired-droplet-for-deployment",
                    self._gateway.get_droplet(droplet_guid),
                )

            app = self._session.lifecycle.read(app_guid, c)
            if app is None:
                return None

            deployment = self._session.orchestrator.deploy(
                app,
                droplet,
                c,
                max_attempts=self._session.settings.deployment_max_attempts,
            )

            try:
                self._session.orchestrator.reconcile(
                    app.guid, ApplicationState.STARTED, droplet.guid, c
                )
            except ApplicationNotFoundError as e:
                raise ApplicationNotFoundError(
                    f"app ({app.guid}) went missing during update, removing from state",
                    step="get-application-state-during-deployment",
                    warnings=e.warnings,
                ) from e

            return deployment

        return self._run("deploy", operation, ctx)

    def reconcile(
        self,
        app_guid: str,
        desired_state: ApplicationState,
        desired_droplet: Optional[str],
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[None]:
        def operation(c: OperationContext) -> None:
            self._session.orchestrator.reconcile(app_guid, desired_state, desired_droplet, c)

        return self._run("reconcile", operation, ctx)

    def read_deployment(
        self,
        app_guid: str,
        deployment_guid: str,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[Deployment]:
        def operation(c: OperationContext) -> Optional[Deployment]:
            with step("get-application-deployments"):
                deployments = self._gateway.get_application_deployments(app_guid)
            for deployment in deployments:
                if deployment.guid == deployment_guid:
                    return c.note("get-application-deployments", deployment)
            return None

        return self._run("read-deployment", operation, ctx)

    # -------------------------
    # APPLICATIONS
    # -------------------------

    def create_application(
        self,
        space_guid: str,
        desired: DesiredApplication,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[UpdateResult]:
        return self._run(
            "create-application",
            lambda c: self._session.lifecycle.create(space_guid, desired, c),
            ctx,
        )

    def update_application(
        self,
        app_guid: str,
        desired: DesiredApplication,
        previous: Optional[DesiredApplication] = None,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[UpdateResult]:
        return self._run(
            "update-application",
            lambda c: self._session.lifecycle.update(app_guid, desired, c, previous=previous),
            ctx,
        )

    def read_application(
        self,
        app_guid: str,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[Application]:
        return self._run(
            "read-application",
            lambda c: self._session.lifecycle.read(app_guid, c),
            ctx,
        )

    def delete_application(
        self,
        app_guid: str,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[None]:
        return self._run(
            "delete-application",
            lambda c: self._session.lifecycle.delete(app_guid, c),
            ctx,
        )

    # -------------------------
    # DROPLETS
    # -------------------------

    def read_droplet(
        self,
        droplet_guid: str,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[Droplet]:
        def operation(c: OperationContext) -> Optional[Droplet]:
            try:
                return c.note("get-droplet-for-read", self._gateway.get_droplet(droplet_guid))
            except ResourceNotFoundError as e:
                c.diagnostics.add_warnings("get-droplet-for-read", e.warnings)
                c.diagnostics.add_warning(
                    f"droplet ({droplet_guid}) not found, removing from state",
                    "get-droplet-for-read",
                )
                return None

        return self._run("read-droplet", operation, ctx)

    def delete_droplet(
        self,
        droplet_guid: str,
        ctx: Optional[OperationContext] = None,
    ) -> OperationResult[None]:
        """Droplets are never deleted; the platform expires old ones."""
        logger.debug(f"[provider] leaving droplet {droplet_guid} in place")
        return OperationResult(None, (ctx or self._session.new_context()).diagnostics)

    # -------------------------
    # HELPERS
    # -------------------------

    def _run(
        self,
        name: str,
        operation: Callable[[OperationContext], Optional[T]],
        ctx: Optional[OperationContext],
    ) -> OperationResult[T]:
        ctx = ctx or self._session.new_context()

        try:
            value = operation(ctx)
        except CloudFoundryError as e:
            logger.error(f"[provider] {name} failed at {e.step}: {e}")
            ctx.diagnostics.add_exception(e)
            return OperationResult(None, ctx.diagnostics)

        return OperationResult(value, ctx.diagnostics)
