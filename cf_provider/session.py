#cf_provider\session.py

"""Session - wires settings, gateway and services together once per plugin."""

import logging
import threading
from typing import Iterable, Optional

from cf_provider.config import ProviderSettings
from cf_provider.core.context import OperationContext
from cf_provider.core.events import EventEmitter, LoggingEventEmitter, MultiEventEmitter
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.lifecycle.manager import ApplicationLifecycleManager
from cf_provider.orchestrator.deployment_orchestrator import DeploymentOrchestrator
from cf_provider.staging.pipeline import StagingPipeline
from cloud_controller.client import CloudControllerClient

logger = logging.getLogger(__name__)


class Session:
    """Read-only after construction. Safe to share between operations."""

    def __init__(
        self,
        settings: ProviderSettings,
        gateway: CloudControllerGateway,
        emitters: MultiEventEmitter,
    ):
        self.settings = settings
        self.gateway = gateway
        self.emitters = emitters

        # ============================================
        # SERVICES
        # ============================================

        self.pipeline = StagingPipeline(gateway, settings, emitters)
        self.orchestrator = DeploymentOrchestrator(gateway, settings, emitters)
        self.lifecycle = ApplicationLifecycleManager(
            gateway,
            settings,
            pipeline=self.pipeline,
            orchestrator=self.orchestrator,
        )

    @classmethod
    def create(
        cls,
        settings: Optional[ProviderSettings] = None,
        gateway: Optional[CloudControllerGateway] = None,
        emitters: Optional[Iterable[EventEmitter]] = None,
        configure_logging: bool = False,
    ) -> "Session":
        settings = settings or ProviderSettings()

        if configure_logging:
            logging.basicConfig(
                level=settings.log_level.upper(),
                format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        if gateway is None:
            gateway = CloudControllerClient(
                api_url=settings.api_url,
                access_token=settings.access_token,
                skip_ssl_validation=settings.skip_ssl_validation,
                timeout=settings.request_timeout,
            )

        if emitters is None:
            emitters = [LoggingEventEmitter()]

        logger.info(f"[session] Cloud Controller at {settings.api_url}")

        return cls(settings, gateway, MultiEventEmitter(emitters))

    def new_context(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> OperationContext:
        """Fresh context for one resource operation."""
        return OperationContext(
            timeout=self.settings.operation_timeout if timeout is None else timeout,
            cancel_event=cancel_event,
        )
