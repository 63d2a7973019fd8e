"""Helpers for running the audit from a host library's test suite.

Example (in the host library's tests)::

    from capaudit.testing import assert_documentation_consistent

    def test_event_requirements_documented():
        assert_documentation_consistent("capaudit.yaml")
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from .config import AuditConfig, load_config
from .engine import run_audit
from .models import AuditReport


def assert_documentation_consistent(
    config: Union[str, Path, AuditConfig],
    workers: Optional[int] = None,
) -> AuditReport:
    """Run the audit and fail with every diagnostic line if it does not pass.

    Raises:
        AssertionError: If any failure was recorded.
    """
    if not isinstance(config, AuditConfig):
        config = load_config(str(config))

    report = run_audit(config, workers=workers)
    if not report.passed:
        raise AssertionError(
            f"{report.failure_count} capability documentation problem(s):\n"
            + "\n".join(report.lines)
        )
    return report
