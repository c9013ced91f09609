# cf_provider/orchestrator/deployment_orchestrator.py
"""Deployment orchestrator - rolling deployments with bounded retries."""

import logging
from typing import List, Optional

from cf_provider.config import ProviderSettings
from cf_provider.core.context import OperationContext
from cf_provider.core.errors import ApplicationNotFoundError, CloudFoundryError, step
from cf_provider.core.events import EventEmitter, NullEventEmitter
from cf_provider.core.events_model import DeploymentEvent
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import (
    Application,
    ApplicationState,
    AttemptStage,
    Deployment,
    DeploymentAttempt,
    Droplet,
    Process,
)
from cf_provider.core.state_machine import AttemptStateMachine
from cf_provider.orchestrator.stability import ProcessStabilityTracker
from cf_provider.poller.poller import PollConfig, StatePoller
from cf_provider.poller.states import deployment_state

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """
    Rolls an application onto a staged droplet.

    Attempt flow:
    1. CREATING     create a deployment for the droplet
    2. DEPLOYING    poll it until FINALIZED
    3. DISCOVERING  list the processes the deployment created
    4. STABILIZING  wait for each new process to be stable
    5. SUCCEEDED or FAILED

    A failed attempt is retried from scratch with a brand-new deployment,
    immediately, up to max_attempts. Non-retryable errors stop the loop.
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
        self._tracker = ProcessStabilityTracker(
            gateway,
            zero_instances_stable=settings.zero_instances_stable,
        )

    # -------------------------
    # DEPLOY
    # -------------------------

    def deploy(
        self,
        app: Application,
        droplet: Droplet,
        ctx: OperationContext,
        max_attempts: Optional[int] = None,
    ) -> Deployment:
        """
        Deploy the droplet, retrying failed attempts.

        Raises:
            CloudFoundryError: last error once attempts are exhausted
        """
        if max_attempts is None:
            max_attempts = self._settings.deployment_max_attempts
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: Optional[CloudFoundryError] = None

        for number in range(1, max_attempts + 1):
            logger.info(f"[{app.name}] rolling deployment (attempt {number}/{max_attempts})...")

            attempt = self._run_attempt(app, droplet, number, ctx)

            if attempt.succeeded:
                logger.info(f"[{app.name}] rolling deployment... OK!")
                self._emitters.emit([DeploymentEvent.deployment_succeeded(app.guid, attempt)])
                return attempt.deployment

            last_error = attempt.error
            final = number == max_attempts or not last_error.retryable
            self._record_failure(app, attempt, max_attempts, ctx, final=final)

            if not last_error.retryable:
                logger.warning(f"[{app.name}] {type(last_error).__name__} is not retryable, giving up")
                break

        raise last_error

    def _run_attempt(
        self,
        app: Application,
        droplet: Droplet,
        number: int,
        ctx: OperationContext,
    ) -> DeploymentAttempt:
        """Run one attempt. Provider errors end up on the returned attempt."""
        attempt = DeploymentAttempt(number=number)

        try:
            with step("create-deployment"):
                attempt.deployment_guid = self._gateway.create_deployment(app.guid, droplet.guid)

            self._emitters.emit([
                DeploymentEvent.deployment_created(app.guid, attempt.deployment_guid, droplet.guid, number)
            ])
            AttemptStateMachine.transition(attempt, AttemptStage.DEPLOYING)

            with step("wait-for-deployment"):
                attempt.deployment = ctx.note(
                    "wait-for-deployment",
                    StatePoller(self._settings.deployment_poll(ctx.timeout), ctx).wait(
                        deployment_state(self._gateway, attempt.deployment_guid),
                        description=f"deployment {attempt.deployment_guid}",
                    ),
                )

            self._emitters.emit([DeploymentEvent.deployment_finalized(app.guid, attempt.deployment)])
            AttemptStateMachine.transition(attempt, AttemptStage.DISCOVERING)

            with step("get-new-application-processes"):
                processes = self._gateway.get_new_deployment_processes(app.guid, attempt.deployment_guid)

            AttemptStateMachine.transition(attempt, AttemptStage.STABILIZING)

            self.wait_for_processes(app, processes, self._settings.process_poll(ctx.timeout), ctx)

            AttemptStateMachine.transition(attempt, AttemptStage.SUCCEEDED)

        except CloudFoundryError as e:
            AttemptStateMachine.transition(attempt, AttemptStage.FAILED, error=e)

        return attempt

    def _record_failure(
        self,
        app: Application,
        attempt: DeploymentAttempt,
        max_attempts: int,
        ctx: OperationContext,
        final: bool = False,
    ) -> None:
        """Warn about a failed attempt.

        Platform warnings of the final attempt travel with the re-raised error.
        """
        error = attempt.error
        logger.warning(
            f"[{app.name}] deployment attempt {attempt.number}/{max_attempts} "
            f"failed at {error.step}: {error}"
        )

        if not final:
            ctx.diagnostics.add_warnings(error.step or "", error.warnings)
        ctx.diagnostics.add_warning(
            f"deployment attempt {attempt.number}/{max_attempts} failed: {error}",
            error.step or "",
        )
        self._emitters.emit([DeploymentEvent.attempt_failed(app.guid, attempt, max_attempts)])

    # -------------------------
    # PROCESSES
    # -------------------------

    def wait_for_processes(
        self,
        app: Application,
        processes: List[Process],
        config: PollConfig,
        ctx: OperationContext,
    ) -> None:
        for process in processes:
            logger.info(f"[{app.name}] waiting for {process.type} process to stabilise...")

            with step("wait-for-process-stability"):
                StatePoller(config, ctx).wait(
                    self._tracker.refresh_for(process),
                    description=f"{process.type} process {process.guid} to stabilise",
                )

            logger.info(f"[{app.name}] waiting for {process.type} process to stabilise... OK!")
            self._emitters.emit([DeploymentEvent.process_stabilized(app.guid, process)])

    # -------------------------
    # RECONCILE
    # -------------------------

    def reconcile(
        self,
        app_guid: str,
        desired_state: ApplicationState,
        desired_droplet: Optional[str],
        ctx: OperationContext,
    ) -> Application:
        """
        Bring the application's run state in line with the desired state.

        Starting only happens when a desired droplet is known.

        Raises:
            ApplicationNotFoundError: application is gone
        """
        with step("get-application"):
            app = self._gateway.get_application(app_guid)
            if app is None:
                raise ApplicationNotFoundError(f"app ({app_guid}) not found")
            ctx.note("get-application", app)

        if desired_state == app.state:
            return app

        if desired_state == ApplicationState.STOPPED:
            logger.info(f"[{app.name}] stopping application...")
            with step("stop-application"):
                app = ctx.note("stop-application", self._gateway.stop_application(app.guid))
            self._emitters.emit([DeploymentEvent.application_stopped(app)])
            return app

        if not desired_droplet:
            logger.info(f"[{app.name}] no droplet to start from, leaving {app.state.value}")
            return app

        logger.info(f"[{app.name}] starting application...")
        with step("start-application"):
            app = ctx.note("start-application", self._gateway.start_application(app.guid))

        with step("get-application-processes"):
            processes = self._gateway.get_application_processes(app.guid)

        self.wait_for_processes(app, processes, self._settings.start_poll(ctx.timeout), ctx)

        self._emitters.emit([DeploymentEvent.application_started(app)])
        return app
