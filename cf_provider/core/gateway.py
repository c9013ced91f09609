# cf_provider/core/gateway.py

from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, List, Optional

from cf_provider.core.models import (
    Application,
    Build,
    Deployment,
    Droplet,
    Job,
    Package,
    PackageType,
    Process,
    ProcessInstance,
)


class CloudControllerGateway(ABC):
    """
    Contract for the Cloud Controller v3 API.

    Implementations raise ResourceNotFoundError for missing resources and
    CloudControllerError for any other failure. Records carry the platform
    warnings returned with the response.
    """

    # -------------------------
    # PACKAGES / BUILDS / DROPLETS
    # -------------------------

    @abstractmethod
    def create_package(
        self,
        app_guid: str,
        package_type: PackageType,
        image: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Package:
        """Create a package scoped to the application."""
        raise NotImplementedError

    @abstractmethod
    def upload_package_bits(self, package: Package, stream: BinaryIO, size: int) -> Package:
        """Upload a source archive into a bits package."""
        raise NotImplementedError

    @abstractmethod
    def get_package(self, guid: str) -> Package:
        raise NotImplementedError

    @abstractmethod
    def create_build(self, package_guid: str) -> Build:
        raise NotImplementedError

    @abstractmethod
    def get_build(self, guid: str) -> Build:
        raise NotImplementedError

    @abstractmethod
    def get_droplet(self, guid: str) -> Droplet:
        raise NotImplementedError

    @abstractmethod
    def get_application_current_droplet(self, app_guid: str) -> Optional[Droplet]:
        """
        Droplet the application currently runs from.
        Returns None if the application has none.
        """
        raise NotImplementedError

    @abstractmethod
    def set_application_droplet(self, app_guid: str, droplet_guid: str) -> None:
        raise NotImplementedError

    # -------------------------
    # DEPLOYMENTS / PROCESSES
    # -------------------------

    @abstractmethod
    def create_deployment(self, app_guid: str, droplet_guid: str) -> str:
        """Start a rolling deployment. Returns the deployment guid."""
        raise NotImplementedError

    @abstractmethod
    def get_deployment(self, guid: str) -> Deployment:
        raise NotImplementedError

    @abstractmethod
    def get_application_deployments(self, app_guid: str) -> List[Deployment]:
        raise NotImplementedError

    @abstractmethod
    def get_new_deployment_processes(self, app_guid: str, deployment_guid: str) -> List[Process]:
        """Processes created by the given deployment."""
        raise NotImplementedError

    @abstractmethod
    def get_application_processes(self, app_guid: str) -> List[Process]:
        raise NotImplementedError

    @abstractmethod
    def get_process_instances(self, process_guid: str) -> List[ProcessInstance]:
        raise NotImplementedError

    @abstractmethod
    def update_process(self, process: Process) -> Process:
        """Apply the process's command and health check."""
        raise NotImplementedError

    @abstractmethod
    def scale_process(
        self,
        process_guid: str,
        instances: Optional[int] = None,
        memory_in_mb: Optional[int] = None,
        disk_in_mb: Optional[int] = None,
    ) -> Process:
        """Scale the process. Unset values are left as they are."""
        raise NotImplementedError

    # -------------------------
    # APPLICATIONS
    # -------------------------

    @abstractmethod
    def get_application(self, app_guid: str) -> Optional[Application]:
        """
        Fetch application by guid.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def create_application(self, app: Application) -> Application:
        raise NotImplementedError

    @abstractmethod
    def update_application(self, app: Application) -> Application:
        """Update name and lifecycle (buildpacks, stack) of an application."""
        raise NotImplementedError

    @abstractmethod
    def start_application(self, app_guid: str) -> Application:
        raise NotImplementedError

    @abstractmethod
    def stop_application(self, app_guid: str) -> Application:
        raise NotImplementedError

    @abstractmethod
    def get_application_environment(self, app_guid: str) -> Dict[str, str]:
        """User-provided environment variables."""
        raise NotImplementedError

    @abstractmethod
    def update_application_environment(
        self,
        app_guid: str,
        variables: Dict[str, Optional[str]],
    ) -> Dict[str, str]:
        """Patch environment variables. A None value unsets the variable."""
        raise NotImplementedError

    @abstractmethod
    def delete_application(self, app_guid: str) -> str:
        """Delete the application. Returns the url of the deletion job."""
        raise NotImplementedError

    # -------------------------
    # JOBS
    # -------------------------

    @abstractmethod
    def get_job(self, job_url: str) -> Job:
        raise NotImplementedError
