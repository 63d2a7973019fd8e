"""Data models for capability audits.

These models are produced by the hierarchy index, extractor, registry and
checker, and consumed by the reporter and the CLI. Everything here is
immutable once built; a verification run never mutates a model it did not
create.

Serialized models support:
- to_dict(self) -> dict: Convert to dict for JSON output
- from_dict(cls, data) -> Self: Create instance from dict
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union


def format_members(members: Iterable[str]) -> str:
    """Render a member set the same way everywhere: sorted, braced."""
    return "{" + ", ".join(sorted(members)) + "}"


# ============================================================
# Taxonomies and types
# ============================================================

@dataclass(frozen=True)
class CapabilityTaxonomy:
    """An enumerated domain of capability members.

    Attributes:
        name: Identifier used in documentation references (e.g. "CacheFlag")
        members: Names of every member of the domain
    """
    name: str
    members: frozenset[str]

    @classmethod
    def from_enum(
        cls, enum_type: type[Enum], name: Optional[str] = None
    ) -> CapabilityTaxonomy:
        """Build a taxonomy from an Enum class, named after the class by default."""
        return cls(
            name=name or enum_type.__name__,
            members=frozenset(member.name for member in enum_type),
        )

    def contains(self, member_name: str) -> bool:
        """Check if a member name belongs to this taxonomy."""
        return member_name in self.members

    def resolve(self, raw: Union[str, Enum]) -> str:
        """Map a member name or enum member to its canonical member name.

        Raises:
            KeyError: If the member does not belong to this taxonomy.
        """
        member_name = raw.name if isinstance(raw, Enum) else str(raw)
        if member_name not in self.members:
            raise KeyError(member_name)
        return member_name

    def resolve_all(self, raw_members: Iterable[Union[str, Enum]]) -> frozenset[str]:
        """Resolve every member of an iterable."""
        return frozenset(self.resolve(raw) for raw in raw_members)


@dataclass(frozen=True)
class EventType:
    """A node of the event type hierarchy.

    Attributes:
        name: Fully qualified name ("package.module.QualName")
        supertype: Fully qualified name of the primary direct supertype
        interfaces: Other direct supertypes that are part of the universe
        description: Attached docstring, None if the type has none
        py_type: The class itself when discovered by reflection
    """
    name: str
    supertype: Optional[str] = None
    interfaces: tuple[str, ...] = ()
    description: Optional[str] = None
    py_type: Optional[type] = field(default=None, compare=False, repr=False)

    @property
    def simple_name(self) -> str:
        """Name without its module path."""
        return self.name.rsplit(".", 1)[-1]

    @property
    def direct_supertypes(self) -> tuple[str, ...]:
        """Primary supertype followed by interfaces."""
        if self.supertype is None:
            return self.interfaces
        return (self.supertype,) + self.interfaces

    @property
    def is_documented(self) -> bool:
        return self.description is not None


@dataclass(frozen=True)
class RequirementSet:
    """Capability members per taxonomy.

    Equality is taxonomy-scoped set equality. A taxonomy that is absent
    from the mapping compares as the empty set.
    """
    members: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def get(self, taxonomy: str) -> frozenset[str]:
        return self.members.get(taxonomy, frozenset())

    @property
    def taxonomies(self) -> tuple[str, ...]:
        return tuple(self.members)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequirementSet):
            return NotImplemented
        names = set(self.members) | set(other.members)
        return all(self.get(name) == other.get(name) for name in names)

    def __hash__(self) -> int:
        return hash(frozenset((k, v) for k, v in self.members.items() if v))

    def to_dict(self) -> dict[str, list[str]]:
        """Serialize to dictionary for JSON storage."""
        return {name: sorted(values) for name, values in self.members.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Iterable[str]]) -> RequirementSet:
        return cls(members={name: frozenset(values) for name, values in data.items()})


# ============================================================
# Findings
# ============================================================

@dataclass(frozen=True)
class MismatchFailure:
    """Documented and derived members differ for a type in one taxonomy.

    Attributes:
        type_name: The offending type
        taxonomy: Taxonomy the sets belong to
        documented: Documented members after exceptions and ignored members
        derived: Members returned by the derivation function
    """
    type_name: str
    taxonomy: str
    documented: frozenset[str]
    derived: frozenset[str]

    @property
    def missing(self) -> frozenset[str]:
        """Members the derivation requires but the documentation omits."""
        return self.derived - self.documented

    @property
    def unexpected(self) -> frozenset[str]:
        """Members the documentation claims but the derivation does not require."""
        return self.documented - self.derived

    @property
    def difference(self) -> frozenset[str]:
        return self.documented ^ self.derived

    def to_dict(self) -> dict[str, Any]:
        return {
            "type_name": self.type_name,
            "taxonomy": self.taxonomy,
            "documented": sorted(self.documented),
            "derived": sorted(self.derived),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MismatchFailure:
        return cls(
            type_name=data["type_name"],
            taxonomy=data["taxonomy"],
            documented=frozenset(data.get("documented", [])),
            derived=frozenset(data.get("derived", [])),
        )


@dataclass(frozen=True)
class InheritanceFailure:
    """A subtype does not document obligations of one of its ancestors.

    Attributes:
        type_name: The subtype lacking members
        taxonomy: Taxonomy the members belong to
        missing: Ancestor members absent from the subtype's documentation
        ancestor: The type the unmet obligation comes from
    """
    type_name: str
    taxonomy: str
    missing: frozenset[str]
    ancestor: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type_name": self.type_name,
            "taxonomy": self.taxonomy,
            "missing": sorted(self.missing),
            "ancestor": self.ancestor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InheritanceFailure:
        return cls(
            type_name=data["type_name"],
            taxonomy=data["taxonomy"],
            missing=frozenset(data.get("missing", [])),
            ancestor=data["ancestor"],
        )


@dataclass(frozen=True)
class ResolutionFailure:
    """Documentation of a type references a member that does not exist."""
    type_name: str
    taxonomy: str
    reference: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type_name": self.type_name,
            "taxonomy": self.taxonomy,
            "reference": self.reference,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResolutionFailure:
        return cls(
            type_name=data["type_name"],
            taxonomy=data["taxonomy"],
            reference=data["reference"],
        )


@dataclass(frozen=True)
class UndocumentedType:
    """A type without any description. Reported as a warning only."""
    type_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"type_name": self.type_name}


@dataclass(frozen=True)
class AuditResults:
    """Everything the consistency checker found in one run.

    Attributes:
        taxonomies: Names of the audited taxonomies, in configured order
        mismatches: Mismatch check failures
        inheritance_failures: Inheritance check failures
        resolution_failures: Unresolvable documentation references
        undocumented: Types skipped for lack of a description
        types_discovered: Size of the type universe
        comparisons: Number of (type, taxonomy) pairs compared by the mismatch check
        ignored: Number of (type, taxonomy) pairs skipped as ignored types
    """
    taxonomies: tuple[str, ...] = ()
    mismatches: tuple[MismatchFailure, ...] = ()
    inheritance_failures: tuple[InheritanceFailure, ...] = ()
    resolution_failures: tuple[ResolutionFailure, ...] = ()
    undocumented: tuple[UndocumentedType, ...] = ()
    types_discovered: int = 0
    comparisons: int = 0
    ignored: int = 0

    @property
    def failure_count(self) -> int:
        return (
            len(self.mismatches)
            + len(self.inheritance_failures)
            + len(self.resolution_failures)
        )

    @property
    def passed(self) -> bool:
        return self.failure_count == 0


@dataclass(frozen=True)
class AuditReport:
    """Rendered outcome of a run.

    Attributes:
        passed: True iff no failure was recorded in any taxonomy
        lines: One diagnostic line per failure
        warnings: One line per undocumented type
        results: The underlying checker results
    """
    passed: bool
    lines: tuple[str, ...]
    warnings: tuple[str, ...]
    results: AuditResults

    @property
    def failure_count(self) -> int:
        return len(self.lines)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        results = self.results
        return {
            "passed": self.passed,
            "failure_count": self.failure_count,
            "taxonomies": list(results.taxonomies),
            "types_discovered": results.types_discovered,
            "comparisons": results.comparisons,
            "ignored": results.ignored,
            "mismatches": [f.to_dict() for f in results.mismatches],
            "inheritance_failures": [f.to_dict() for f in results.inheritance_failures],
            "resolution_failures": [f.to_dict() for f in results.resolution_failures],
            "undocumented": [u.type_name for u in results.undocumented],
            "lines": list(self.lines),
            "warnings": list(self.warnings),
        }
