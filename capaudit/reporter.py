"""Aggregates checker results into a pass/fail report.

Every failure renders as one line naming the taxonomy, the offending type
and the exact set difference, so it can be fixed without re-running with
extra instrumentation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .errors import FailureKind
from .models import (
    AuditReport,
    AuditResults,
    InheritanceFailure,
    MismatchFailure,
    ResolutionFailure,
    UndocumentedType,
    format_members,
)

if TYPE_CHECKING:
    from .logger import AuditLogger

logger = logging.getLogger(__name__)


def format_mismatch(failure: MismatchFailure) -> str:
    details = []
    if failure.missing:
        details.append(f"undocumented: {', '.join(sorted(failure.missing))}")
    if failure.unexpected:
        details.append(f"not derived: {', '.join(sorted(failure.unexpected))}")
    return (
        f"[{failure.taxonomy}] {failure.type_name}: documented "
        f"{format_members(failure.documented)} but derived "
        f"{format_members(failure.derived)} ({'; '.join(details)})"
    )


def format_inheritance(failure: InheritanceFailure) -> str:
    return (
        f"[{failure.taxonomy}] {failure.type_name} does not document "
        f"{format_members(failure.missing)} inherited from {failure.ancestor}"
    )


def format_resolution(failure: ResolutionFailure) -> str:
    return f"[{failure.taxonomy}] {failure.type_name}: unresolvable reference {failure.reference}"


def format_undocumented(warning: UndocumentedType) -> str:
    return f"Undocumented class at {warning.type_name}"


class Reporter:
    """Turns AuditResults into an AuditReport.

    Example:
        report = Reporter().report(checker.run())
        if not report.passed:
            print("\\n".join(report.lines))
    """

    def __init__(self, audit_logger: Optional[AuditLogger] = None) -> None:
        self.audit_logger = audit_logger

    def report(self, results: AuditResults) -> AuditReport:
        """Aggregate all failures; the run passes iff none was recorded."""
        lines: list[str] = []

        for failure in results.resolution_failures:
            lines.append(format_resolution(failure))
            self._record(FailureKind.UNRESOLVED_REFERENCE, "unresolved_reference", failure.to_dict())
        for failure in results.mismatches:
            lines.append(format_mismatch(failure))
            self._record(FailureKind.MISMATCH, "mismatch", failure.to_dict())
        for failure in results.inheritance_failures:
            lines.append(format_inheritance(failure))
            self._record(FailureKind.INHERITANCE, "inheritance_violation", failure.to_dict())

        warnings = []
        for warning in results.undocumented:
            warnings.append(format_undocumented(warning))
            self._record(FailureKind.UNDOCUMENTED, "undocumented", warning.to_dict())

        for line in lines:
            logger.error(line)

        passed = not lines
        if self.audit_logger is not None:
            self.audit_logger.info("audit_result", {
                "passed": passed,
                "failure_count": len(lines),
                "types_discovered": results.types_discovered,
                "comparisons": results.comparisons,
            })

        return AuditReport(
            passed=passed,
            lines=tuple(lines),
            warnings=tuple(warnings),
            results=results,
        )

    def _record(self, kind: FailureKind, event_type: str, data: dict) -> None:
        if self.audit_logger is not None:
            self.audit_logger.record_finding(kind, event_type, data)
