#cf_provider\poller\poller.py
"""Generic state-change watcher for asynchronous Cloud Controller resources."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from cf_provider.core.context import OperationContext
from cf_provider.core.errors import (
    OperationCancelledError,
    PollTimeoutError,
    ResourceNotFoundError,
    UnexpectedStateError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResult(Generic[T]):
    """Outcome of a single refresh.

    ``state`` is the label shown in timeout messages.
    """

    status: PollStatus
    payload: Optional[T] = None
    error: Optional[Exception] = None
    state: str = ""

    @classmethod
    def pending(cls, payload: Optional[T] = None, state: str = "") -> "PollResult[T]":
        return cls(PollStatus.PENDING, payload=payload, state=state)

    @classmethod
    def succeeded(cls, payload: Optional[T] = None, state: str = "") -> "PollResult[T]":
        return cls(PollStatus.SUCCEEDED, payload=payload, state=state)

    @classmethod
    def failed(cls, error: Exception, state: str = "") -> "PollResult[T]":
        return cls(PollStatus.FAILED, error=error, state=state)

    @classmethod
    def from_state(
        cls,
        payload: T,
        label: str,
        pending: Iterable[str],
        target: Iterable[str],
    ) -> "PollResult[T]":
        """Classify a state label against pending/target sets."""
        pending = set(pending)
        target = set(target)

        if label in target:
            return cls.succeeded(payload, state=label)
        if label in pending:
            return cls.pending(payload, state=label)
        return cls.failed(UnexpectedStateError(label, pending, target), state=label)

    @property
    def is_pending(self) -> bool:
        return self.status == PollStatus.PENDING


@dataclass(frozen=True)
class PollConfig:
    poll_interval: float = 5
    delay: float = 5
    timeout: float = 1200
    not_found_checks: int = 2


class StatePoller:
    """
    Blocking wait on a refresh function.

    Flow:
    1. Sleep the initial delay
    2. Refresh until succeeded, failed, or out of time
    3. Tolerate up to ``not_found_checks`` consecutive not-found reads
    """

    def __init__(
        self,
        config: PollConfig,
        ctx: OperationContext,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._ctx = ctx
        self._clock = clock

    def wait(self, refresh: Callable[[], PollResult[T]], description: str = "resource") -> T:
        config = self._config
        deadline = self._clock() + config.timeout

        if self._ctx.sleep(min(config.delay, config.timeout)):
            raise OperationCancelledError(f"cancelled while waiting for {description}")

        not_found = 0
        last_state = ""

        while True:
            if self._ctx.cancelled:
                raise OperationCancelledError(f"cancelled while waiting for {description}")

            try:
                result = refresh()
            except ResourceNotFoundError:
                not_found += 1
                if not_found > config.not_found_checks:
                    raise
                logger.debug(
                    f"[poller] {description} not found "
                    f"({not_found}/{config.not_found_checks})"
                )
                result = None
            else:
                not_found = 0

            if result is not None:
                if result.status == PollStatus.SUCCEEDED:
                    logger.debug(f"[poller] {description} reached '{result.state}'")
                    return result.payload

                if result.status == PollStatus.FAILED:
                    raise result.error

                last_state = result.state or last_state
                logger.debug(f"[poller] {description} pending (state: {last_state})")

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise PollTimeoutError(description, config.timeout, last_state)

            if self._ctx.sleep(min(config.poll_interval, remaining)):
                raise OperationCancelledError(f"cancelled while waiting for {description}")
