# cloud_controller/client.py
"""Cloud Controller v3 HTTP client."""

import logging
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Tuple, Type, TypeVar
from urllib.parse import unquote

import requests
from pydantic import BaseModel, ValidationError

from cf_provider.core.errors import CloudControllerError, ResourceNotFoundError
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import (
    Application,
    Build,
    Deployment,
    Droplet,
    Job,
    LifecycleType,
    Package,
    PackageType,
    Process,
    ProcessInstance,
)
from cloud_controller.schemas import (
    ApplicationSchema,
    BuildSchema,
    DeploymentSchema,
    DropletSchema,
    EnvironmentVariablesSchema,
    GuidRef,
    JobSchema,
    ListPage,
    PackageSchema,
    ProcessSchema,
    ProcessStatsSchema,
)

logger = logging.getLogger(__name__)

WARNINGS_HEADER = "X-Cf-Warnings"

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def parse_warnings(header: Optional[str]) -> List[str]:
    """Split the comma separated, url-encoded warnings header."""
    if not header:
        return []
    return [unquote(w.strip()) for w in header.split(",") if w.strip()]


class CloudControllerClient(CloudControllerGateway):
    """Client for the Cloud Controller v3 API."""

    def __init__(
        self,
        api_url: str,
        access_token: Optional[str] = None,
        skip_ssl_validation: bool = False,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize client.

        Args:
            api_url: Base URL of the API (e.g., "https://api.example.com")
            access_token: Already-issued bearer token
            skip_ssl_validation: Disable TLS certificate checks
            timeout: Request timeout in seconds
        """
        self.base_url = api_url.rstrip('/')
        self.timeout = timeout

        self._http = session or requests.Session()
        self._http.verify = not skip_ssl_validation
        self._http.headers["Accept"] = "application/json"
        if access_token:
            self._http.headers["Authorization"] = f"bearer {access_token}"

    # -------------------------
    # TRANSPORT
    # -------------------------

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    def _send(self, method: str, path: str, **kwargs) -> Tuple[requests.Response, List[str]]:
        url = self._url(path)
        logger.debug(f"[cc] {method} {url}")

        try:
            response = self._http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise CloudControllerError(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise CloudControllerError(f"cannot connect to Cloud Controller at {self.base_url}") from e
        except requests.exceptions.RequestException as e:
            raise CloudControllerError(f"{method} {url} failed: {e}") from e

        warnings = parse_warnings(response.headers.get(WARNINGS_HEADER))

        if response.status_code >= 400:
            errors = self._errors(response)
            detail = errors[0].get("detail") if errors else None
            message = detail or f"{method} {url} returned {response.status_code}"
            error_class = ResourceNotFoundError if response.status_code == 404 else CloudControllerError
            raise error_class(
                message,
                status_code=response.status_code,
                errors=errors,
                warnings=warnings,
            )

        return response, warnings

    def _errors(self, response: requests.Response) -> List[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError:
            return [{"detail": response.text}] if response.text else []
        if isinstance(body, dict):
            return list(body.get("errors") or [])
        return []

    def _request(self, method: str, path: str, **kwargs) -> Tuple[Dict[str, Any], List[str]]:
        response, warnings = self._send(method, path, **kwargs)
        if response.status_code == 204 or not response.content:
            return {}, warnings
        try:
            return response.json(), warnings
        except ValueError as e:
            raise CloudControllerError(
                f"{method} {self._url(path)} returned a body that is not JSON",
                status_code=response.status_code,
                warnings=warnings,
            ) from e

    def _validate(self, schema: Type[SchemaT], body: Any) -> SchemaT:
        """Parse a response body, turning schema drift into a provider error."""
        try:
            return schema.model_validate(body)
        except ValidationError as e:
            raise CloudControllerError(f"unexpected {schema.__name__} response: {e}") from e

    def _list(self, path: str, params: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict[str, Any]], List[str]]:
        """Collect every page of a list endpoint."""
        resources: List[Dict[str, Any]] = []
        warnings: List[str] = []

        for page, page_warnings in self._pages(path, params):
            resources.extend(page.resources)
            warnings.extend(page_warnings)

        return resources, warnings

    def _pages(self, path: str, params: Optional[Dict[str, Any]]) -> Iterator[Tuple[ListPage, List[str]]]:
        next_path: Optional[str] = path
        while next_path:
            body, warnings = self._request("GET", next_path, params=params)
            page = self._validate(ListPage, body)
            yield page, warnings

            # next href already carries the query
            next_path = page.pagination.next.href if page.pagination.next else None
            params = None

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
        payload: Dict[str, Any] = {
            "type": package_type.value,
            "relationships": {"app": {"data": {"guid": app_guid}}},
        }
        if package_type == PackageType.DOCKER:
            data: Dict[str, Any] = {"image": image}
            if username:
                data["username"] = username
                data["password"] = password
            payload["data"] = data

        body, warnings = self._request("POST", "/v3/packages", json=payload)
        return self._validate(PackageSchema, body).to_domain(warnings, app_guid=app_guid)

    def upload_package_bits(self, package: Package, stream: BinaryIO, size: int) -> Package:
        logger.info(f"[cc] uploading {size} bytes to package {package.guid}")

        body, warnings = self._request(
            "POST",
            f"/v3/packages/{package.guid}/upload",
            files={"bits": ("package.zip", stream, "application/zip")},
            data={"resources": "[]"},
        )
        return self._validate(PackageSchema, body).to_domain(warnings, app_guid=package.app_guid)

    def get_package(self, guid: str) -> Package:
        body, warnings = self._request("GET", f"/v3/packages/{guid}")
        return self._validate(PackageSchema, body).to_domain(warnings)

    def create_build(self, package_guid: str) -> Build:
        body, warnings = self._request(
            "POST",
            "/v3/builds",
            json={"package": {"guid": package_guid}},
        )
        return self._validate(BuildSchema, body).to_domain(warnings)

    def get_build(self, guid: str) -> Build:
        body, warnings = self._request("GET", f"/v3/builds/{guid}")
        return self._validate(BuildSchema, body).to_domain(warnings)

    def get_droplet(self, guid: str) -> Droplet:
        body, warnings = self._request("GET", f"/v3/droplets/{guid}")
        return self._validate(DropletSchema, body).to_domain(warnings)

    def get_application_current_droplet(self, app_guid: str) -> Optional[Droplet]:
        try:
            body, warnings = self._request("GET", f"/v3/apps/{app_guid}/droplets/current")
        except ResourceNotFoundError:
            return None
        return self._validate(DropletSchema, body).to_domain(warnings, app_guid=app_guid)

    def set_application_droplet(self, app_guid: str, droplet_guid: str) -> None:
        self._request(
            "PATCH",
            f"/v3/apps/{app_guid}/relationships/current_droplet",
            json={"data": {"guid": droplet_guid}},
        )

    # -------------------------
    # DEPLOYMENTS / PROCESSES
    # -------------------------

    def create_deployment(self, app_guid: str, droplet_guid: str) -> str:
        body, _ = self._request(
            "POST",
            "/v3/deployments",
            json={
                "droplet": {"guid": droplet_guid},
                "relationships": {"app": {"data": {"guid": app_guid}}},
            },
        )
        return self._validate(GuidRef, body).guid

    def get_deployment(self, guid: str) -> Deployment:
        body, warnings = self._request("GET", f"/v3/deployments/{guid}")
        return self._validate(DeploymentSchema, body).to_domain(warnings)

    def get_application_deployments(self, app_guid: str) -> List[Deployment]:
        resources, warnings = self._list("/v3/deployments", params={"app_guids": app_guid})
        return [self._validate(DeploymentSchema, r).to_domain(warnings) for r in resources]

    def get_new_deployment_processes(self, app_guid: str, deployment_guid: str) -> List[Process]:
        deployment = self.get_deployment(deployment_guid)
        return [self._get_process(ref.guid) for ref in deployment.new_processes]

    def _get_process(self, guid: str) -> Process:
        body, warnings = self._request("GET", f"/v3/processes/{guid}")
        return self._validate(ProcessSchema, body).to_domain(warnings)

    def get_application_processes(self, app_guid: str) -> List[Process]:
        resources, warnings = self._list(f"/v3/apps/{app_guid}/processes")
        return [self._validate(ProcessSchema, r).to_domain(warnings) for r in resources]

    def get_process_instances(self, process_guid: str) -> List[ProcessInstance]:
        body, _ = self._request("GET", f"/v3/processes/{process_guid}/stats")
        return [stat.to_domain() for stat in self._validate(ProcessStatsSchema, body).resources]

    def update_process(self, process: Process) -> Process:
        payload: Dict[str, Any] = {"command": process.command}
        if process.health_check_type:
            data: Dict[str, Any] = {"timeout": process.health_check_timeout}
            if process.health_check_type == "http":
                data["endpoint"] = process.health_check_endpoint
            payload["health_check"] = {"type": process.health_check_type, "data": data}

        body, warnings = self._request("PATCH", f"/v3/processes/{process.guid}", json=payload)
        return self._validate(ProcessSchema, body).to_domain(warnings)

    def scale_process(
        self,
        process_guid: str,
        instances: Optional[int] = None,
        memory_in_mb: Optional[int] = None,
        disk_in_mb: Optional[int] = None,
    ) -> Process:
        scale = {"instances": instances, "memory_in_mb": memory_in_mb, "disk_in_mb": disk_in_mb}
        body, warnings = self._request(
            "POST",
            f"/v3/processes/{process_guid}/actions/scale",
            json={k: v for k, v in scale.items() if v is not None},
        )
        return self._validate(ProcessSchema, body).to_domain(warnings)

    # -------------------------
    # APPLICATIONS
    # -------------------------

    def get_application(self, app_guid: str) -> Optional[Application]:
        try:
            body, warnings = self._request("GET", f"/v3/apps/{app_guid}")
        except ResourceNotFoundError:
            return None
        return self._validate(ApplicationSchema, body).to_domain(warnings)

    def create_application(self, app: Application) -> Application:
        payload = {
            "name": app.name,
            "relationships": {"space": {"data": {"guid": app.space_guid}}},
            "lifecycle": self._lifecycle(app),
        }
        body, warnings = self._request("POST", "/v3/apps", json=payload)
        return self._validate(ApplicationSchema, body).to_domain(warnings)

    def update_application(self, app: Application) -> Application:
        payload = {
            "name": app.name,
            "lifecycle": self._lifecycle(app),
        }
        body, warnings = self._request("PATCH", f"/v3/apps/{app.guid}", json=payload)
        return self._validate(ApplicationSchema, body).to_domain(warnings)

    def _lifecycle(self, app: Application) -> Dict[str, Any]:
        if app.lifecycle_type == LifecycleType.BUILDPACK:
            data: Dict[str, Any] = {"buildpacks": list(app.buildpacks)}
            if app.stack:
                data["stack"] = app.stack
            return {"type": app.lifecycle_type.value, "data": data}
        return {"type": app.lifecycle_type.value, "data": {}}

    def start_application(self, app_guid: str) -> Application:
        body, warnings = self._request("POST", f"/v3/apps/{app_guid}/actions/start")
        return self._validate(ApplicationSchema, body).to_domain(warnings)

    def stop_application(self, app_guid: str) -> Application:
        body, warnings = self._request("POST", f"/v3/apps/{app_guid}/actions/stop")
        return self._validate(ApplicationSchema, body).to_domain(warnings)

    def get_application_environment(self, app_guid: str) -> Dict[str, str]:
        body, _ = self._request("GET", f"/v3/apps/{app_guid}/environment_variables")
        return self._validate(EnvironmentVariablesSchema, body).var

    def update_application_environment(
        self,
        app_guid: str,
        variables: Dict[str, Optional[str]],
    ) -> Dict[str, str]:
        body, _ = self._request(
            "PATCH",
            f"/v3/apps/{app_guid}/environment_variables",
            json={"var": variables},
        )
        return self._validate(EnvironmentVariablesSchema, body).var

    def delete_application(self, app_guid: str) -> str:
        response, warnings = self._send("DELETE", f"/v3/apps/{app_guid}")
        job_url = response.headers.get("Location")
        if not job_url:
            raise CloudControllerError(
                f"delete of app {app_guid} returned no job location",
                status_code=response.status_code,
                warnings=warnings,
            )
        return job_url

    # -------------------------
    # JOBS
    # -------------------------

    def get_job(self, job_url: str) -> Job:
        body, warnings = self._request("GET", job_url)
        return self._validate(JobSchema, body).to_domain(job_url, warnings)
