"""
Error classification for capability audits.

This module provides:
- FailureKind enum for categorizing everything an audit can report
- Custom exception classes for the conditions that interrupt extraction,
  derivation or discovery
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """
    Classification of audit findings.

    Used by the reporter to decide whether a finding fails the run.
    """

    # Fatal - abort the run
    DISCOVERY = "discovery"             # Type universe could not be built
    DERIVATION = "derivation"           # Derivation function misbehaved

    # Per-type failures - accumulated
    UNRESOLVED_REFERENCE = "unresolved_reference"
    MISMATCH = "mismatch"
    INHERITANCE = "inheritance"

    # Informational
    UNDOCUMENTED = "undocumented"

    @property
    def is_fatal(self) -> bool:
        """Check if this kind of finding stops the run."""
        return self in (FailureKind.DISCOVERY, FailureKind.DERIVATION)

    @property
    def fails_run(self) -> bool:
        """Check if a single finding of this kind fails the run."""
        return self is not FailureKind.UNDOCUMENTED


class CapAuditError(Exception):
    """
    Base exception for capability audit errors.

    Includes the failure kind for handling decisions.
    """

    kind: FailureKind = FailureKind.DISCOVERY

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DiscoveryError(CapAuditError):
    """Raised when the event type universe cannot be built."""

    kind = FailureKind.DISCOVERY

    def __init__(self, message: str, namespace: str = "") -> None:
        super().__init__(message)
        self.namespace = namespace


class ReferenceResolutionError(CapAuditError):
    """
    Raised when documentation references a capability member that does not exist.

    Carries the type and the raw reference token exactly as written, so the
    typo or stale reference can be found with a plain text search.
    """

    kind = FailureKind.UNRESOLVED_REFERENCE

    def __init__(self, type_name: str, reference: str, taxonomy: str = "") -> None:
        super().__init__(f"{type_name} references unknown capability {reference}")
        self.type_name = type_name
        self.reference = reference
        self.taxonomy = taxonomy


class DerivationError(CapAuditError):
    """Raised when the authoritative derivation function fails for a type."""

    kind = FailureKind.DERIVATION

    def __init__(
        self,
        type_name: str,
        taxonomy: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(f"Deriving {taxonomy} for {type_name} failed: {reason}")
        self.type_name = type_name
        self.taxonomy = taxonomy
        self.reason = reason
        self.cause = cause
