#cf_provider\core\context.py

import threading
from typing import Any, Iterable, Optional

from cf_provider.core.diagnostics import Diagnostics


class OperationContext:
    """Per-operation state: overall timeout, cancellation and diagnostics.

    One context is created for every create/read/update/delete call and is
    never shared between resources.
    """

    def __init__(
        self,
        timeout: float,
        cancel_event: Optional[threading.Event] = None,
        diagnostics: Optional[Diagnostics] = None,
    ):
        if timeout < 0:
            raise ValueError("timeout must not be negative")

        self.timeout = timeout
        self.cancel_event = cancel_event or threading.Event()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def sleep(self, seconds: float) -> bool:
        """Sleep, waking early on cancellation. Returns True if cancelled."""
        if seconds <= 0:
            return self.cancelled
        return self.cancel_event.wait(seconds)

    def note(self, step: str, record: Any) -> Any:
        """Collect platform warnings carried by a gateway record."""
        warnings: Iterable[str] = getattr(record, "warnings", None) or ()
        self.diagnostics.add_warnings(step, warnings)
        return record

    def __repr__(self) -> str:
        return f"<OperationContext(timeout={self.timeout}, cancelled={self.cancelled})>"
