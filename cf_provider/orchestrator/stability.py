#cf_provider\orchestrator\stability.py

import logging
from enum import Enum
from typing import Callable, List

from cf_provider.core.errors import ProcessCrashedError
from cf_provider.core.gateway import CloudControllerGateway
from cf_provider.core.models import Process, ProcessInstance, ProcessInstanceState
from cf_provider.poller.poller import PollResult

logger = logging.getLogger(__name__)


class StabilityVerdict(Enum):
    PENDING = "pending"
    STABLE = "stable"
    CRASHED = "crashed"


class ProcessStabilityTracker:
    """Classifies a process's instances as pending, stable or crashed."""

    def __init__(self, gateway: CloudControllerGateway, zero_instances_stable: bool = True):
        self._gateway = gateway
        self._zero_instances_stable = zero_instances_stable

    def verdict(self, process: Process, instances: List[ProcessInstance]) -> StabilityVerdict:
        total = len(instances)
        running = sum(1 for i in instances if i.state == ProcessInstanceState.RUNNING)
        crashed = sum(1 for i in instances if i.state == ProcessInstanceState.CRASHED)

        if total == 0:
            verdict = (
                StabilityVerdict.STABLE
                if self._zero_instances_stable
                else StabilityVerdict.PENDING
            )
        elif running == process.instances:
            verdict = StabilityVerdict.STABLE
        elif crashed == total:
            verdict = StabilityVerdict.CRASHED
        else:
            verdict = StabilityVerdict.PENDING

        logger.debug(
            f"[stability] process {process.guid} ({process.type}): "
            f"running={running} crashed={crashed} total={total} "
            f"desired={process.instances} -> {verdict.value}"
        )
        return verdict

    def refresh_for(self, process: Process) -> Callable[[], PollResult[Process]]:
        """Refresh function for the poller."""

        def refresh() -> PollResult[Process]:
            instances = self._gateway.get_process_instances(process.guid)
            verdict = self.verdict(process, instances)

            if verdict == StabilityVerdict.STABLE:
                return PollResult.succeeded(process, state=verdict.value)
            if verdict == StabilityVerdict.CRASHED:
                return PollResult.failed(ProcessCrashedError(len(instances)), state=verdict.value)
            return PollResult.pending(process, state=verdict.value)

        return refresh
