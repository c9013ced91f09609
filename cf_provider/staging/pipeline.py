#cf_provider\staging\pipeline.py
"""Package/build pipeline - turns application source into a staged droplet."""

import logging
from typing import Optional

from cf_provider.config import ProviderSettings
from cf_provider.core.context import OperationContext
from cf_provider.core.errors import ApplicationNotFoundError, SourceValidationError, step
from cf_provider.core.events import EventEmitter, NullEventEmitter
from cf_provider.core.events_model import DeploymentEvent
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import Droplet, PackageType
from cf_provider.core.validation import validate_source_archive
from cf_provider.poller.poller import StatePoller
from cf_provider.poller.states import build_state, package_state
from cf_provider.staging.sources import ArchiveSource, ImageSource, SourceSpec

logger = logging.getLogger(__name__)


class StagingPipeline:
    """
    Stages application source into a droplet.

    Archive flow:
    1. Validate the archive path (no remote call on failure)
    2. Create bits package, upload, wait for READY
    3. Create build, wait for STAGED
    4. Fetch the built droplet

    Image flow skips the upload. Packages and builds created before a
    failure are left in place.
    """

    def __init__(
        self,
        gateway: CloudControllerGateway,
        settings: ProviderSettings,
        emitters: Optional[EventEmitter] = None,
    ):
        self._gateway = gateway
        self._settings = settings
        self._emitters = emitters or NullEventEmitter()

    # -------------------------
    # SOURCES
    # -------------------------

    def stage_source(self, app_guid: str, source: SourceSpec, ctx: OperationContext) -> Droplet:
        if isinstance(source, ArchiveSource):
            if source.buildpacks or source.stack:
                self._update_lifecycle(app_guid, source, ctx)
            return self.stage_from_archive(app_guid, source.path, ctx)

        if isinstance(source, ImageSource):
            return self.stage_from_image(
                app_guid,
                source.image,
                ctx,
                username=source.username,
                password=source.password,
            )

        raise TypeError(f"Unknown source type: {type(source).__name__}")

    def stage_from_archive(self, app_guid: str, archive_path: str, ctx: OperationContext) -> Droplet:
        size = validate_source_archive(archive_path)

        logger.info(f"[staging] app={app_guid} staging archive {archive_path} ({size} bytes)")

        with step("create-bits-package"):
            package = ctx.note(
                "create-bits-package",
                self._gateway.create_package(app_guid, PackageType.BITS),
            )

        with step("upload-bits"):
            try:
                stream = open(archive_path, "rb")
            except OSError as e:
                raise SourceValidationError(
                    f"failed to read zip file for source_code_path: {archive_path}",
                    detail=str(e),
                ) from e

            with stream:
                package = ctx.note(
                    "upload-bits",
                    self._gateway.upload_package_bits(package, stream, size),
                )

            self._poller(ctx).wait(
                package_state(self._gateway, package.guid),
                description=f"package {package.guid} to be ready",
            )

        logger.info(f"[staging] app={app_guid} package {package.guid} ready")

        with step("create-build"):
            build = ctx.note("create-build", self._gateway.create_build(package.guid))
            self._poller(ctx).wait(
                build_state(self._gateway, build.guid),
                description=f"build {build.guid} to be staged",
            )

        return self._built_droplet(app_guid, build.guid, "get-build", "get-built-droplet", ctx)

    def stage_from_image(
        self,
        app_guid: str,
        image: str,
        ctx: OperationContext,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Droplet:
        logger.info(f"[staging] app={app_guid} staging image {image}")

        with step("create-docker-package"):
            package = ctx.note(
                "create-docker-package",
                self._gateway.create_package(
                    app_guid,
                    PackageType.DOCKER,
                    image=image,
                    username=username,
                    password=password,
                ),
            )

        with step("create-docker-build"):
            build = ctx.note("create-docker-build", self._gateway.create_build(package.guid))
            self._poller(ctx).wait(
                build_state(self._gateway, build.guid),
                description=f"build {build.guid} to be staged",
            )

        return self._built_droplet(
            app_guid, build.guid, "get-docker-build", "get-built-docker-droplet", ctx
        )

    # -------------------------
    # HELPERS
    # -------------------------

    def _built_droplet(
        self,
        app_guid: str,
        build_guid: str,
        build_step: str,
        droplet_step: str,
        ctx: OperationContext,
    ) -> Droplet:
        with step(build_step):
            build = ctx.note(build_step, self._gateway.get_build(build_guid))

        with step(droplet_step):
            droplet = ctx.note(droplet_step, self._gateway.get_droplet(build.droplet_guid))

        logger.info(f"[staging] app={app_guid} droplet {droplet.guid} staged")

        self._emitters.emit([DeploymentEvent.droplet_staged(app_guid, droplet)])
        return droplet

    def _update_lifecycle(self, app_guid: str, source: ArchiveSource, ctx: OperationContext) -> None:
        with step("update-app-lifecycle"):
            app = self._gateway.get_application(app_guid)
            if app is None:
                raise ApplicationNotFoundError(f"app ({app_guid}) not found")

            app.buildpacks = list(source.buildpacks)
            app.stack = source.stack
            ctx.note("update-app-lifecycle", self._gateway.update_application(app))

    def _poller(self, ctx: OperationContext) -> StatePoller:
        return StatePoller(self._settings.staging_poll(ctx.timeout), ctx)
