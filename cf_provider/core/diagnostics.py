"""Structured warning/error collection returned to the resource layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional

from cf_provider.core.errors import CloudFoundryError


class Severity(Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """One warning or error, with the step it came from as detail."""

    severity: Severity
    summary: str
    detail: str = ""


class Diagnostics:
    """Ordered collection of diagnostics accumulated across steps.

    Callers aggregate warnings from several steps and decide themselves
    whether an error aborts the surrounding operation.
    """

    def __init__(self, items: Optional[Iterable[Diagnostic]] = None):
        self._items: List[Diagnostic] = list(items or [])

    # -------------------------
    # ADD
    # -------------------------

    def add_warning(self, summary: str, detail: str = "") -> None:
        self._items.append(Diagnostic(Severity.WARNING, summary, detail))

    def add_error(self, summary: str, detail: str = "") -> None:
        self._items.append(Diagnostic(Severity.ERROR, summary, detail))

    def add_warnings(self, detail: str, warnings: Iterable[str]) -> None:
        """Record platform warnings returned by a step."""
        for warning in warnings:
            self.add_warning(warning, detail)

    def add_exception(self, error: Exception) -> None:
        """Record a failure, preceded by any platform warnings it carries."""
        if isinstance(error, CloudFoundryError):
            detail = error.step or ""
            self.add_warnings(detail, error.warnings)
            self.add_error(error.message, detail)
        else:
            self.add_error(str(error))

    # -------------------------
    # QUERY
    # -------------------------

    def has_error(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self._items)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity == Severity.WARNING]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return (
            f"<Diagnostics(errors={len(self.errors)}, "
            f"warnings={len(self.warnings)})>"
        )
