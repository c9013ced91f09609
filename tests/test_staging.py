"""Test the package/build pipeline and staging sources."""

import pytest

from cf_provider.core.errors import (
    CloudControllerError,
    JobFailedError,
    SourceValidationError,
    UnsupportedLifecycleError,
)
from cf_provider.core.models import BuildState, LifecycleType, PackageState, PackageType
from cf_provider.lifecycle.manager import DesiredApplication
from cf_provider.staging.sources import ArchiveSource, ImageSource, staging_request_for


class TestStagingRequest:
    """Test the staging decision."""

    def test_buildpack_with_changed_source(self):
        desired = DesiredApplication(name="app", source_code_path="/src/app.zip", buildpacks=["go_buildpack"])

        source = staging_request_for(LifecycleType.BUILDPACK, desired, {"source_code_hash"})

        assert source == ArchiveSource(path="/src/app.zip", buildpacks=["go_buildpack"])

    def test_buildpack_without_relevant_change(self):
        desired = DesiredApplication(name="app", source_code_path="/src/app.zip")

        assert staging_request_for(LifecycleType.BUILDPACK, desired, {"name", "state"}) is None

    def test_buildpack_without_source_path(self):
        desired = DesiredApplication(name="app")

        assert staging_request_for(LifecycleType.BUILDPACK, desired, {"stack"}) is None

    def test_docker_with_changed_image(self):
        desired = DesiredApplication(
            name="app",
            lifecycle_type=LifecycleType.DOCKER,
            docker_image="nginx:alpine",
            docker_username="user",
            docker_password="secret",
        )

        source = staging_request_for(LifecycleType.DOCKER, desired, {"docker_image"})

        assert source == ImageSource(image="nginx:alpine", username="user", password="secret")

    def test_environment_change_restages(self):
        desired = DesiredApplication(name="app", lifecycle_type=LifecycleType.DOCKER, docker_image="nginx")

        assert staging_request_for(LifecycleType.DOCKER, desired, {"environment"}) is not None

    def test_kpack_is_unsupported(self):
        with pytest.raises(UnsupportedLifecycleError):
            staging_request_for(LifecycleType.KPACK, DesiredApplication(name="app"), set())


class TestStageFromArchive:
    """Test staging an archive."""

    def test_stages_droplet(self, session, controller, buildpack_app, archive, ctx, recorder):
        controller.package_script = [PackageState.PROCESSING_UPLOAD, PackageState.READY]
        controller.build_script = [BuildState.STAGING, BuildState.STAGING, BuildState.STAGED]

        droplet = session.pipeline.stage_from_archive(buildpack_app.guid, archive, ctx)

        assert droplet.guid in controller.droplets
        assert droplet.app_guid == buildpack_app.guid
        assert controller.calls["get_package"] == 2
        assert controller.calls["get_build"] == 4  # 3 polls + re-read
        assert len(recorder.of_type("droplet.staged")) == 1

        package_guid = next(iter(controller.uploads))
        assert controller.packages[package_guid].type == PackageType.BITS
        assert controller.uploads[package_guid].startswith(b"PK")

    @pytest.mark.parametrize("path", ["", None])
    def test_missing_path_fails_before_remote_calls(self, session, controller, buildpack_app, ctx, path):
        with pytest.raises(SourceValidationError) as exc_info:
            session.pipeline.stage_from_archive(buildpack_app.guid, path, ctx)

        assert str(exc_info.value) == "source_code_path required for lifecycle type buildpack"
        assert controller.calls["create_package"] == 0

    def test_unreadable_path_fails_before_remote_calls(self, session, controller, buildpack_app, ctx, tmp_path):
        missing = str(tmp_path / "missing.zip")

        with pytest.raises(SourceValidationError, match="failed to read zip file"):
            session.pipeline.stage_from_archive(buildpack_app.guid, missing, ctx)

        assert controller.calls["create_package"] == 0

    def test_archive_removed_after_validation(self, session, controller, buildpack_app, ctx, tmp_path, monkeypatch):
        vanished = str(tmp_path / "vanished.zip")
        monkeypatch.setattr("cf_provider.staging.pipeline.validate_source_archive", lambda path: 128)

        with pytest.raises(SourceValidationError, match="failed to read zip file") as exc_info:
            session.pipeline.stage_from_archive(buildpack_app.guid, vanished, ctx)

        assert exc_info.value.step == "upload-bits"
        assert controller.calls["upload_package_bits"] == 0

    def test_failed_build_names_step(self, session, controller, buildpack_app, archive, ctx):
        controller.build_script = [BuildState.STAGING, BuildState.FAILED]

        with pytest.raises(JobFailedError) as exc_info:
            session.pipeline.stage_from_archive(buildpack_app.guid, archive, ctx)

        assert exc_info.value.step == "create-build"
        assert "StagingError" in str(exc_info.value)

    def test_upload_failure_names_step(self, session, controller, buildpack_app, archive, ctx):
        controller.failures["upload_package_bits"] = CloudControllerError(
            "upload rejected",
            status_code=422,
        )

        with pytest.raises(CloudControllerError) as exc_info:
            session.pipeline.stage_from_archive(buildpack_app.guid, archive, ctx)

        assert exc_info.value.step == "upload-bits"
        assert controller.calls["create_build"] == 0

    def test_platform_warnings_collected(self, session, controller, buildpack_app, archive, ctx):
        controller.warnings["create_package"] = ["package quota nearly reached"]

        session.pipeline.stage_from_archive(buildpack_app.guid, archive, ctx)

        summaries = [(d.summary, d.detail) for d in ctx.diagnostics.warnings]
        assert ("package quota nearly reached", "create-bits-package") in summaries


class TestStageFromImage:
    """Test staging a container image."""

    def test_stages_without_upload(self, session, controller, docker_app, ctx):
        droplet = session.pipeline.stage_from_image(docker_app.guid, "nginx:alpine", ctx)

        assert droplet.image == "nginx:alpine"
        assert controller.calls["upload_package_bits"] == 0
        assert controller.calls["get_package"] == 0

    def test_stage_source_dispatches_image(self, session, controller, docker_app, ctx):
        droplet = session.pipeline.stage_source(docker_app.guid, ImageSource(image="redis:7"), ctx)

        assert droplet.image == "redis:7"

    def test_stage_source_records_lifecycle(self, session, controller, buildpack_app, archive, ctx):
        source = ArchiveSource(path=archive, buildpacks=["python_buildpack"], stack="cflinuxfs4")

        session.pipeline.stage_source(buildpack_app.guid, source, ctx)

        stored = controller.applications[buildpack_app.guid]
        assert stored.buildpacks == ["python_buildpack"]
        assert stored.stack == "cflinuxfs4"
