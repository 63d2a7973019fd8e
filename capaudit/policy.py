"""Integrator-supplied tables that relax the consistency checks.

All tables are plain immutable data handed to the checker at construction
time, so the policy can be tested on its own and there is no module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, NamedTuple, Optional

from .models import CapabilityTaxonomy


class ExceptionEntry(NamedTuple):
    """Members documented as possible for a type but intentionally not derived."""
    type_name: str
    taxonomy: str
    members: frozenset[str]


def _freeze(table: Optional[Mapping[str, Iterable[str]]]) -> dict[str, frozenset[str]]:
    return {key: frozenset(values) for key, values in (table or {}).items()}


class ExceptionTable:
    """Optional/contextual members subtracted before the mismatch comparison."""

    def __init__(self, entries: Iterable[ExceptionEntry] = ()) -> None:
        table: dict[tuple[str, str], frozenset[str]] = {}
        for entry in entries:
            key = (entry.type_name, entry.taxonomy)
            table[key] = table.get(key, frozenset()) | frozenset(entry.members)
        self._table = table

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Mapping[str, Iterable[str]]]
    ) -> ExceptionTable:
        """Build from {type_name: {taxonomy: [members]}}."""
        return cls(
            ExceptionEntry(type_name, taxonomy, frozenset(members))
            for type_name, by_taxonomy in data.items()
            for taxonomy, members in by_taxonomy.items()
        )

    def for_type(self, type_name: str, taxonomy: str) -> frozenset[str]:
        return self._table.get((type_name, taxonomy), frozenset())

    def merged(self, other: ExceptionTable) -> ExceptionTable:
        return ExceptionTable(list(self) + list(other))

    def __iter__(self):
        for (type_name, taxonomy), members in sorted(self._table.items()):
            yield ExceptionEntry(type_name, taxonomy, members)

    def __len__(self) -> int:
        return len(self._table)


class InheritanceExemptions:
    """Subtypes excused from restating the documented obligations of their ancestors.

    An exemption either applies to every taxonomy or is scoped to one.
    """

    def __init__(
        self,
        everywhere: Iterable[str] = (),
        by_taxonomy: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._everywhere = frozenset(everywhere)
        self._by_taxonomy = _freeze(by_taxonomy)

    def is_exempt(self, type_name: str, taxonomy: str) -> bool:
        return (
            type_name in self._everywhere
            or type_name in self._by_taxonomy.get(taxonomy, frozenset())
        )

    def type_names(self) -> frozenset[str]:
        names = set(self._everywhere)
        for values in self._by_taxonomy.values():
            names |= values
        return frozenset(names)


@dataclass(frozen=True)
class AuditPolicy:
    """Every relaxation the checker honors.

    Attributes:
        exceptions: Members subtracted from one type's documented set
        exemptions: Subtypes excused from the inheritance check
        ignored_members: Members subtracted from every documented set of a taxonomy
        ignored_types: Types never compared by the mismatch check, per taxonomy
    """
    exceptions: ExceptionTable = field(default_factory=ExceptionTable)
    exemptions: InheritanceExemptions = field(default_factory=InheritanceExemptions)
    ignored_members: Mapping[str, frozenset[str]] = field(default_factory=dict)
    ignored_types: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        exceptions: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None,
        exempt_everywhere: Iterable[str] = (),
        exempt_by_taxonomy: Optional[Mapping[str, Iterable[str]]] = None,
        ignored_members: Optional[Mapping[str, Iterable[str]]] = None,
        ignored_types: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> AuditPolicy:
        """Build a policy from plain mappings, as read from a config file."""
        return cls(
            exceptions=ExceptionTable.from_mapping(exceptions or {}),
            exemptions=InheritanceExemptions(exempt_everywhere, exempt_by_taxonomy),
            ignored_members=_freeze(ignored_members),
            ignored_types=_freeze(ignored_types),
        )

    def is_ignored(self, type_name: str, taxonomy: str) -> bool:
        return type_name in self.ignored_types.get(taxonomy, frozenset())

    def ignored_members_of(self, taxonomy: str) -> frozenset[str]:
        return self.ignored_members.get(taxonomy, frozenset())

    def with_exceptions(self, extra: ExceptionTable) -> AuditPolicy:
        """Copy of this policy with more exception entries."""
        return AuditPolicy(
            exceptions=self.exceptions.merged(extra),
            exemptions=self.exemptions,
            ignored_members=self.ignored_members,
            ignored_types=self.ignored_types,
        )

    def unknown_members(self, taxonomies: Iterable[CapabilityTaxonomy]) -> list[str]:
        """References to taxonomies or members that do not exist, as 'Taxonomy#MEMBER'."""
        domains = {t.name: t for t in taxonomies}
        problems = []

        def check(taxonomy: str, members: Iterable[str]) -> None:
            domain = domains.get(taxonomy)
            if domain is None:
                problems.append(f"{taxonomy} (unknown taxonomy)")
                return
            problems.extend(
                f"{taxonomy}#{member}" for member in sorted(members)
                if not domain.contains(member)
            )

        for entry in self.exceptions:
            check(entry.taxonomy, entry.members)
        for taxonomy, members in sorted(self.ignored_members.items()):
            check(taxonomy, members)
        for taxonomy in sorted(self.ignored_types):
            check(taxonomy, ())
        return problems
