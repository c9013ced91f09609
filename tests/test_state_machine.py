"""Test deployment attempt state transitions."""

from datetime import datetime, timezone

import pytest

from cf_provider.core.errors import DeploymentFailedError
from cf_provider.core.models import AttemptStage, DeploymentAttempt
from cf_provider.core.state_machine import AttemptStateMachine, InvalidStateTransition


class TestAttemptStateMachine:
    """Test the attempt stage transitions."""

    def test_happy_path(self):
        attempt = DeploymentAttempt(number=1)
        finished = datetime(2024, 1, 1, tzinfo=timezone.utc)

        for stage in (AttemptStage.DEPLOYING, AttemptStage.DISCOVERING, AttemptStage.STABILIZING):
            AttemptStateMachine.transition(attempt, stage)
            assert attempt.finished_at is None

        AttemptStateMachine.transition(attempt, AttemptStage.SUCCEEDED, now=finished)

        assert attempt.succeeded
        assert attempt.finished_at == finished

    @pytest.mark.parametrize("stage", [
        AttemptStage.CREATING,
        AttemptStage.DEPLOYING,
        AttemptStage.DISCOVERING,
        AttemptStage.STABILIZING,
    ])
    def test_any_running_stage_can_fail(self, stage):
        attempt = DeploymentAttempt(number=2, stage=stage)
        error = DeploymentFailedError("CANCELED")

        AttemptStateMachine.transition(attempt, AttemptStage.FAILED, error=error)

        assert attempt.stage == AttemptStage.FAILED
        assert attempt.error is error
        assert attempt.finished_at is not None

    def test_cannot_skip_stages(self):
        attempt = DeploymentAttempt(number=1)

        with pytest.raises(InvalidStateTransition):
            AttemptStateMachine.transition(attempt, AttemptStage.STABILIZING)

    def test_terminal_stage_is_final(self):
        attempt = DeploymentAttempt(number=1, stage=AttemptStage.FAILED)

        with pytest.raises(InvalidStateTransition):
            AttemptStateMachine.transition(attempt, AttemptStage.DEPLOYING)

    def test_same_stage_is_noop(self):
        attempt = DeploymentAttempt(number=1)

        assert AttemptStateMachine.transition(attempt, AttemptStage.CREATING) is attempt
        assert attempt.stage == AttemptStage.CREATING
