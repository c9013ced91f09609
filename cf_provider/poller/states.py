#cf_provider\poller\states.py

"""Refresh functions for the resources the poller waits on."""

from typing import Callable

from cf_provider.core.errors import DeploymentFailedError, JobFailedError
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import (
    Build,
    BuildState,
    Deployment,
    Job,
    JobState,
    Package,
    PackageState,
)
from cf_provider.poller.poller import PollResult


PACKAGE_PENDING = {
    PackageState.AWAITING_UPLOAD.value,
    PackageState.COPYING.value,
    PackageState.PROCESSING_UPLOAD.value,
}
PACKAGE_TARGET = {PackageState.READY.value}

BUILD_PENDING = {BuildState.STAGING.value}
BUILD_TARGET = {BuildState.STAGED.value}

JOB_PENDING = {JobState.PROCESSING.value, JobState.POLLING.value}
JOB_TARGET = {JobState.COMPLETE.value}


def package_state(gateway: CloudControllerGateway, guid: str) -> Callable[[], PollResult[Package]]:
    def refresh() -> PollResult[Package]:
        package = gateway.get_package(guid)
        return PollResult.from_state(package, package.state.value, PACKAGE_PENDING, PACKAGE_TARGET)
    return refresh


def build_state(gateway: CloudControllerGateway, guid: str) -> Callable[[], PollResult[Build]]:
    def refresh() -> PollResult[Build]:
        build = gateway.get_build(guid)
        if build.state == BuildState.FAILED:
            return PollResult.failed(
                JobFailedError(f"build failed: {build.error or 'unknown error'}"),
                state=build.state.value,
            )
        return PollResult.from_state(build, build.state.value, BUILD_PENDING, BUILD_TARGET)
    return refresh


def deployment_state(gateway: CloudControllerGateway, guid: str) -> Callable[[], PollResult[Deployment]]:
    """Pending until FINALIZED; only FINALIZED with DEPLOYED succeeds."""

    def refresh() -> PollResult[Deployment]:
        deployment = gateway.get_deployment(guid)
        label = deployment.status_value.value
        if not deployment.is_finalized():
            return PollResult.pending(deployment, state=label)
        if deployment.is_deployed():
            return PollResult.succeeded(deployment, state=label)
        return PollResult.failed(
            DeploymentFailedError(deployment.status_reason),
            state=f"{label}/{deployment.status_reason}",
        )
    return refresh


def job_state(gateway: CloudControllerGateway, job_url: str) -> Callable[[], PollResult[Job]]:
    def refresh() -> PollResult[Job]:
        job = gateway.get_job(job_url)
        if job.has_failed():
            return PollResult.failed(
                JobFailedError(f"job failed: {job.error_detail() or 'unknown error'}"),
                state=job.state.value,
            )
        return PollResult.from_state(job, job.state.value, JOB_PENDING, JOB_TARGET)
    return refresh
