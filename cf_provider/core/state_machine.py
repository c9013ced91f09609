#cf_provider\core\state_machine.py

from datetime import datetime, timezone
from typing import Optional

from cf_provider.core.models import AttemptStage, DeploymentAttempt


ALLOWED_TRANSITIONS = {
    AttemptStage.CREATING: {
        AttemptStage.DEPLOYING,
        AttemptStage.FAILED,
    },
    AttemptStage.DEPLOYING: {
        AttemptStage.DISCOVERING,
        AttemptStage.FAILED,
    },
    AttemptStage.DISCOVERING: {
        AttemptStage.STABILIZING,
        AttemptStage.FAILED,
    },
    AttemptStage.STABILIZING: {
        AttemptStage.SUCCEEDED,
        AttemptStage.FAILED,
    },
}

TERMINAL_STAGES = {AttemptStage.SUCCEEDED, AttemptStage.FAILED}


class InvalidStateTransition(Exception):
    pass


class AttemptStateMachine:
    @staticmethod
    def transition(
        attempt: DeploymentAttempt,
        new_stage: AttemptStage,
        *,
        error: Optional[Exception] = None,
        now: Optional[datetime] = None,
    ) -> DeploymentAttempt:
        now = now or datetime.now(timezone.utc)

        current = attempt.stage

        if current == new_stage:
            return attempt

        allowed = ALLOWED_TRANSITIONS.get(current, set())
        if new_stage not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {current} to {new_stage}"
            )

        if new_stage == AttemptStage.FAILED:
            attempt.error = error

        if new_stage in TERMINAL_STAGES:
            attempt.finished_at = now

        attempt.stage = new_stage
        return attempt
