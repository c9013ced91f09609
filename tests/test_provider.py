"""Test the provider facade."""

from cf_provider.core.diagnostics import Severity
from cf_provider.core.errors import CloudControllerError
from cf_provider.core.models import ApplicationState, DeploymentStatusValue
from cf_provider.lifecycle.manager import DesiredApplication
from cf_provider.staging.sources import ArchiveSource, ImageSource

FAILED = (DeploymentStatusValue.FINALIZED, "CANCELED")


class TestProviderDeploy:
    """Test the deployment entry point."""

    def test_deploy_then_start(self, provider, controller):
        droplet = controller.add_droplet()
        app = controller.add_application("web-app")
        droplet.app_guid = app.guid

        result = provider.deploy(app.guid, droplet.guid)

        assert result.ok
        assert result.value.is_deployed()
        assert controller.applications[app.guid].state == ApplicationState.STARTED

    def test_deploy_failure_becomes_error_diagnostic(self, provider, controller, settings):
        controller.deployment_scripts = [[FAILED]]
        droplet = controller.add_droplet()
        app = controller.add_application("web-app")

        result = provider.deploy(app.guid, droplet.guid)

        assert not result.ok
        assert result.value is None
        assert controller.calls["create_deployment"] == settings.deployment_max_attempts

        errors = result.diagnostics.errors
        assert len(errors) == 1
        assert errors[0].summary == "deployment failed: CANCELED"
        assert errors[0].detail == "wait-for-deployment"
        assert len(result.diagnostics.warnings) == settings.deployment_max_attempts

    def test_deploy_missing_droplet(self, provider, controller):
        app = controller.add_application("web-app")

        result = provider.deploy(app.guid, "no-such-droplet")

        assert not result.ok
        assert result.diagnostics.errors[0].detail == "get-desired-droplet-for-deployment"

    def test_deploy_missing_app_clears_state(self, provider, controller):
        droplet = controller.add_droplet()

        result = provider.deploy("gone", droplet.guid)

        assert result.ok
        assert result.value is None
        assert controller.calls["create_deployment"] == 0

    def test_error_carries_platform_warnings(self, provider, controller, settings):
        controller.failures["create_deployment"] = CloudControllerError(
            "space quota exceeded",
            status_code=422,
            warnings=["memory usage at 99%"],
        )
        droplet = controller.add_droplet()
        app = controller.add_application("web-app")

        result = provider.deploy(app.guid, droplet.guid)

        summaries = [(d.severity, d.summary) for d in result.diagnostics]
        assert summaries.count((Severity.WARNING, "memory usage at 99%")) == settings.deployment_max_attempts
        assert summaries[-1] == (Severity.ERROR, "space quota exceeded")

    def test_read_deployment(self, provider, controller):
        droplet = controller.add_droplet()
        app = controller.add_application("web-app")
        deployed = provider.deploy(app.guid, droplet.guid).value

        assert provider.read_deployment(app.guid, deployed.guid).value.guid == deployed.guid
        assert provider.read_deployment(app.guid, "other").value is None


class TestProviderStaging:
    """Test staging and droplet entry points."""

    def test_stage_source(self, provider, buildpack_app, archive):
        result = provider.stage_source(buildpack_app.guid, ArchiveSource(path=archive))

        assert result.ok
        assert result.value.app_guid == buildpack_app.guid

    def test_stage_source_validation_error(self, provider, buildpack_app, controller):
        result = provider.stage_source(buildpack_app.guid, ArchiveSource(path=""))

        assert not result.ok
        assert result.diagnostics.errors[0].summary == "source_code_path required for lifecycle type buildpack"
        assert controller.calls["create_package"] == 0

    def test_stage_image(self, provider, docker_app):
        result = provider.stage_source(docker_app.guid, ImageSource(image="busybox"))

        assert result.value.image == "busybox"

    def test_read_missing_droplet(self, provider):
        result = provider.read_droplet("gone")

        assert result.ok
        assert result.value is None
        assert result.diagnostics.warnings[0].detail == "get-droplet-for-read"

    def test_delete_droplet_is_noop(self, provider, controller):
        droplet = controller.add_droplet()

        result = provider.delete_droplet(droplet.guid)

        assert result.ok
        assert droplet.guid in controller.droplets


class TestProviderApplications:
    """Test application entry points."""

    def test_create_update_read_delete(self, provider, controller, archive):
        desired = DesiredApplication(name="crud-app", source_code_path=archive)

        created = provider.create_application("space-1", desired)
        assert created.ok
        app_guid = created.value.application.guid

        stopped = DesiredApplication(name="crud-app", source_code_path=archive, state=ApplicationState.STOPPED)
        updated = provider.update_application(app_guid, stopped, previous=desired)
        assert updated.ok
        assert updated.value.application.state == ApplicationState.STOPPED

        read = provider.read_application(app_guid)
        assert read.value.name == "crud-app"

        deleted = provider.delete_application(app_guid)
        assert deleted.ok
        assert provider.read_application(app_guid).value is None

    def test_reconcile(self, provider, controller):
        app = controller.add_application("web-app", state=ApplicationState.STARTED)

        result = provider.reconcile(app.guid, ApplicationState.STOPPED, None)

        assert result.ok
        assert controller.applications[app.guid].state == ApplicationState.STOPPED
