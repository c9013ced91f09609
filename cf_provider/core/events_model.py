"""Event models for deployment orchestration."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass
class DeploymentEvent:
    """Base orchestration event."""

    event_type: str
    app_guid: str
    timestamp: datetime
    metadata: Dict[str, Any]

    @staticmethod
    def droplet_staged(app_guid: str, droplet):
        """Droplet staged event."""
        return DeploymentEvent(
            event_type="droplet.staged",
            app_guid=app_guid,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "droplet_guid": droplet.guid,
                "stack": droplet.stack,
                "image": droplet.image,
            }
        )

    @staticmethod
    def deployment_created(app_guid: str, deployment_guid: str, droplet_guid: str, attempt: int):
        """Deployment created event."""
        return DeploymentEvent(
            event_type="deployment.created",
            app_guid=app_guid,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "deployment_guid": deployment_guid,
                "droplet_guid": droplet_guid,
                "attempt": attempt,
            }
        )

    @staticmethod
    def deployment_finalized(app_guid: str, deployment):
        """Deployment finalized with DEPLOYED."""
        return DeploymentEvent(
            event_type="deployment.finalized",
            app_guid=app_guid,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "deployment_guid": deployment.guid,
                "status_reason": deployment.status_reason,
            }
        )

    @staticmethod
    def attempt_failed(app_guid: str, attempt, max_attempts: int):
        """Deployment attempt failed event."""
        error = attempt.error
        return DeploymentEvent(
            event_type="deployment.attempt_failed",
            app_guid=app_guid,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "attempt": attempt.number,
                "max_attempts": max_attempts,
                "deployment_guid": attempt.deployment_guid,
                "step": getattr(error, "step", None),
                "error_message": str(error) if error else None,
            }
        )

    @staticmethod
    def deployment_succeeded(app_guid: str, attempt):
        """Rollout completed, all new processes stable."""
        return DeploymentEvent(
            event_type="deployment.succeeded",
            app_guid=app_guid,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "attempt": attempt.number,
                "deployment_guid": attempt.deployment_guid,
            }
        )

    @staticmethod
    def process_stabilized(app_guid: str, process):
        """Process instances stable event."""
        return DeploymentEvent(
            event_type="process.stabilized",
            app_guid=app_guid,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "process_guid": process.guid,
                "process_type": process.type,
                "instances": process.instances,
            }
        )

    @staticmethod
    def application_started(app):
        return DeploymentEvent(
            event_type="application.started",
            app_guid=app.guid,
            timestamp=datetime.now(timezone.utc),
            metadata={"name": app.name}
        )

    @staticmethod
    def application_stopped(app):
        return DeploymentEvent(
            event_type="application.stopped",
            app_guid=app.guid,
            timestamp=datetime.now(timezone.utc),
            metadata={"name": app.name}
        )
