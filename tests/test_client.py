"""Test the Cloud Controller HTTP client."""

import io
from unittest.mock import MagicMock, patch

import pytest
import requests

from cf_provider.core.errors import CloudControllerError, ResourceNotFoundError
from cf_provider.core.events import MultiEventEmitter, RecordingEventEmitter
from cf_provider.core.models import (
    Application,
    ApplicationState,
    BuildState,
    DeploymentStatusValue,
    JobState,
    LifecycleType,
    Package,
    PackageState,
    PackageType,
    Process,
    ProcessInstanceState,
)
from cf_provider.provider import Provider
from cf_provider.session import Session
from cloud_controller.client import CloudControllerClient, parse_warnings

API = "https://api.example.com"


def response(status_code=200, body=None, headers=None):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.content = b"{}" if body is not None else b""
    resp.text = "" if body is None else str(body)
    resp.json.return_value = body
    if body is None:
        resp.json.side_effect = ValueError("no body")
    return resp


APP_BODY = {
    "guid": "app-1",
    "name": "web-app",
    "state": "STARTED",
    "lifecycle": {"type": "buildpack", "data": {"buildpacks": ["go_buildpack"], "stack": "cflinuxfs4"}},
    "relationships": {"space": {"data": {"guid": "space-1"}}},
}


@pytest.fixture
def client():
    return CloudControllerClient(API, access_token="token-123", skip_ssl_validation=True, timeout=10)


class TestTransport:
    """Test request handling and error mapping."""

    def test_headers_and_tls(self, client):
        assert client._http.headers["Authorization"] == "bearer token-123"
        assert client._http.verify is False

    def test_warnings_parsed(self):
        assert parse_warnings("first%20warning, second") == ["first warning", "second"]
        assert parse_warnings(None) == []

    def test_not_found_maps_to_resource_not_found(self, client):
        body = {"errors": [{"code": 10010, "title": "CF-ResourceNotFound", "detail": "Package not found"}]}
        with patch.object(requests.Session, "request", return_value=response(404, body)):
            with pytest.raises(ResourceNotFoundError) as exc_info:
                client.get_package("pkg-1")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "Package not found"

    def test_error_keeps_status_and_warnings(self, client):
        body = {"errors": [{"title": "CF-UnprocessableEntity", "detail": "name must be unique"}]}
        resp = response(422, body, headers={"X-Cf-Warnings": "quota%20low"})

        with patch.object(requests.Session, "request", return_value=resp):
            with pytest.raises(CloudControllerError) as exc_info:
                client.create_application(Application(guid="", name="dup", space_guid="space-1"))

        error = exc_info.value
        assert not isinstance(error, ResourceNotFoundError)
        assert error.status_code == 422
        assert error.errors[0]["title"] == "CF-UnprocessableEntity"
        assert error.warnings == ["quota low"]

    def test_connection_error_wrapped(self, client):
        with patch.object(requests.Session, "request", side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(CloudControllerError, match="cannot connect"):
                client.get_build("b-1")


class TestResources:
    """Test resource parsing."""

    def test_get_application(self, client):
        resp = response(200, APP_BODY, headers={"X-Cf-Warnings": "deprecated%20stack"})

        with patch.object(requests.Session, "request", return_value=resp) as request:
            app = client.get_application("app-1")

        request.assert_called_once_with("GET", f"{API}/v3/apps/app-1", timeout=10)
        assert app.state == ApplicationState.STARTED
        assert app.lifecycle_type == LifecycleType.BUILDPACK
        assert app.buildpacks == ["go_buildpack"]
        assert app.space_guid == "space-1"
        assert app.warnings == ["deprecated stack"]

    def test_missing_application_is_none(self, client):
        with patch.object(requests.Session, "request", return_value=response(404, {"errors": []})):
            assert client.get_application("gone") is None

    def test_create_docker_package(self, client):
        body = {"guid": "pkg-1", "type": "docker", "state": "READY", "data": {"image": "nginx"}}

        with patch.object(requests.Session, "request", return_value=response(201, body)) as request:
            package = client.create_package("app-1", PackageType.DOCKER, image="nginx", username="u", password="p")

        payload = request.call_args.kwargs["json"]
        assert payload["data"] == {"image": "nginx", "username": "u", "password": "p"}
        assert payload["relationships"]["app"]["data"]["guid"] == "app-1"
        assert package.state == PackageState.READY
        assert package.app_guid == "app-1"

    def test_upload_bits(self, client):
        body = {"guid": "pkg-1", "type": "bits", "state": "PROCESSING_UPLOAD"}
        package = Package(guid="pkg-1", app_guid="app-1", type=PackageType.BITS)

        with patch.object(requests.Session, "request", return_value=response(200, body)) as request:
            result = client.upload_package_bits(package, io.BytesIO(b"PK"), 2)

        assert request.call_args.args == ("POST", f"{API}/v3/packages/pkg-1/upload")
        assert "bits" in request.call_args.kwargs["files"]
        assert result.state == PackageState.PROCESSING_UPLOAD

    def test_get_build_with_droplet(self, client):
        body = {"guid": "b-1", "state": "STAGED", "package": {"guid": "pkg-1"}, "droplet": {"guid": "d-1"}}

        with patch.object(requests.Session, "request", return_value=response(200, body)):
            build = client.get_build("b-1")

        assert build.state == BuildState.STAGED
        assert build.droplet_guid == "d-1"

    def test_get_deployment(self, client):
        body = {
            "guid": "dep-1",
            "status": {"value": "FINALIZED", "reason": "DEPLOYED"},
            "droplet": {"guid": "d-1"},
            "new_processes": [{"guid": "proc-1", "type": "web"}],
            "relationships": {"app": {"data": {"guid": "app-1"}}},
        }

        with patch.object(requests.Session, "request", return_value=response(200, body)):
            deployment = client.get_deployment("dep-1")

        assert deployment.status_value == DeploymentStatusValue.FINALIZED
        assert deployment.is_deployed()
        assert deployment.app_guid == "app-1"
        assert deployment.new_processes[0].type == "web"

    def test_process_instances(self, client):
        body = {"resources": [{"index": 0, "state": "RUNNING"}, {"index": 1, "state": "CRASHED"}]}

        with patch.object(requests.Session, "request", return_value=response(200, body)):
            instances = client.get_process_instances("proc-1")

        assert [i.state for i in instances] == [ProcessInstanceState.RUNNING, ProcessInstanceState.CRASHED]

    def test_processes_follow_pagination(self, client):
        first = {
            "pagination": {"total_results": 2, "next": {"href": f"{API}/v3/apps/app-1/processes?page=2"}},
            "resources": [{"guid": "proc-1", "type": "web", "instances": 2}],
        }
        second = {
            "pagination": {"total_results": 2, "next": None},
            "resources": [{"guid": "proc-2", "type": "worker", "instances": 1}],
        }

        with patch.object(
            requests.Session, "request", side_effect=[response(200, first), response(200, second)]
        ) as request:
            processes = client.get_application_processes("app-1")

        assert [p.type for p in processes] == ["web", "worker"]
        assert request.call_args_list[1].args[1] == f"{API}/v3/apps/app-1/processes?page=2"

    def test_delete_returns_job_location(self, client):
        resp = response(202, None, headers={"Location": f"{API}/v3/jobs/job-1"})

        with patch.object(requests.Session, "request", return_value=resp):
            assert client.delete_application("app-1") == f"{API}/v3/jobs/job-1"

    def test_get_job(self, client):
        body = {"guid": "job-1", "state": "FAILED", "errors": [{"code": 1, "detail": "boom"}]}

        with patch.object(requests.Session, "request", return_value=response(200, body)):
            job = client.get_job(f"{API}/v3/jobs/job-1")

        assert job.state == JobState.FAILED
        assert job.error_detail() == "boom"

    def test_environment_patch_unsets_none(self, client):
        body = {"var": {"KEEP": "b"}}

        with patch.object(requests.Session, "request", return_value=response(200, body)) as request:
            env = client.update_application_environment("app-1", {"KEEP": "b", "OLD": None})

        assert request.call_args.kwargs["json"] == {"var": {"KEEP": "b", "OLD": None}}
        assert env == {"KEEP": "b"}

    def test_transient_instance_state_is_other(self, client):
        body = {"resources": [{"index": 0, "state": "RUNNING"}, {"index": 1, "state": "STOPPING"}]}

        with patch.object(requests.Session, "request", return_value=response(200, body)):
            instances = client.get_process_instances("proc-1")

        assert [i.state for i in instances] == [ProcessInstanceState.RUNNING, ProcessInstanceState.OTHER]

    def test_update_process_sends_command_and_health_check(self, client):
        body = {
            "guid": "proc-1",
            "type": "web",
            "instances": 2,
            "command": "bundle exec rackup",
            "health_check": {"type": "http", "data": {"timeout": 30, "endpoint": "/health"}},
        }
        process = Process(
            guid="proc-1",
            type="web",
            command="bundle exec rackup",
            health_check_type="http",
            health_check_endpoint="/health",
            health_check_timeout=30,
        )

        with patch.object(requests.Session, "request", return_value=response(200, body)) as request:
            updated = client.update_process(process)

        assert request.call_args.args == ("PATCH", f"{API}/v3/processes/proc-1")
        assert request.call_args.kwargs["json"] == {
            "command": "bundle exec rackup",
            "health_check": {"type": "http", "data": {"timeout": 30, "endpoint": "/health"}},
        }
        assert updated.health_check_endpoint == "/health"
        assert updated.instances == 2

    def test_scale_process_sends_only_set_values(self, client):
        body = {"guid": "proc-1", "type": "web", "instances": 3, "memory_in_mb": 256}

        with patch.object(requests.Session, "request", return_value=response(202, body)) as request:
            scaled = client.scale_process("proc-1", instances=3)

        assert request.call_args.args == ("POST", f"{API}/v3/processes/proc-1/actions/scale")
        assert request.call_args.kwargs["json"] == {"instances": 3}
        assert scaled.instances == 3


class TestMalformedResponses:
    """Test responses that do not match the expected shape."""

    def test_schema_drift_is_provider_error(self, client):
        body = {"guid": "b-1", "state": "EXPLODED", "package": {"guid": "pkg-1"}}

        with patch.object(requests.Session, "request", return_value=response(200, body)):
            with pytest.raises(CloudControllerError, match="unexpected BuildSchema response") as exc_info:
                client.get_build("b-1")

        assert exc_info.value.retryable

    def test_body_that_is_not_json(self, client):
        resp = response(200, {})
        resp.content = b"<html>gateway</html>"
        resp.json.side_effect = ValueError("Expecting value")

        with patch.object(requests.Session, "request", return_value=resp):
            with pytest.raises(CloudControllerError, match="not JSON"):
                client.get_deployment("dep-1")

    def test_create_deployment_without_guid(self, client):
        with patch.object(requests.Session, "request", return_value=response(201, {"status": {}})):
            with pytest.raises(CloudControllerError):
                client.create_deployment("app-1", "d-1")


class TestProviderOverHttp:
    """Test the facade on top of the HTTP client."""

    def test_start_with_stopping_instance_reports_no_raise(self, client, settings):
        processes = {
            "pagination": {"total_results": 1, "next": None},
            "resources": [{"guid": "proc-1", "type": "web", "instances": 1}],
        }
        stats = {"resources": [{"index": 0, "state": "RUNNING"}, {"index": 1, "state": "STOPPING"}]}
        started = dict(APP_BODY, state="STARTED")
        stopped = dict(APP_BODY, state="STOPPED")

        def route(method, url, **kwargs):
            if url.endswith("/actions/start"):
                return response(200, started)
            if url.endswith("/processes"):
                return response(200, processes)
            if url.endswith("/stats"):
                return response(200, stats)
            return response(200, stopped)

        provider = Provider(Session(settings, client, MultiEventEmitter([RecordingEventEmitter()])))

        with patch.object(requests.Session, "request", side_effect=route):
            result = provider.reconcile("app-1", ApplicationState.STARTED, "d-1")

        assert result.ok
        assert not result.diagnostics.has_error()

    def test_schema_drift_becomes_error_diagnostic(self, client, settings):
        provider = Provider(Session(settings, client, MultiEventEmitter([RecordingEventEmitter()])))
        broken = {"guid": "app-1", "name": "web-app", "state": "HALF_STARTED"}

        with patch.object(requests.Session, "request", return_value=response(200, broken)):
            result = provider.read_application("app-1")

        assert not result.ok
        assert "unexpected ApplicationSchema response" in result.diagnostics.errors[0].summary
