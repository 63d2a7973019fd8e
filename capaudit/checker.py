"""Consistency checks between documented and derived capability requirements.

ConsistencyChecker runs two independent checks over the whole type universe:

- Mismatch check: for each documented type and taxonomy, the documented
  members (minus exception entries and ignored members) must equal the
  members the derivation function returns.
- Inheritance check: every documented subtype must document at least the
  members its documented ancestors do, unless it is exempted.

A failure in one check never suppresses diagnostics from the other.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from .errors import ReferenceResolutionError
from .extractor import DocumentationExtractor
from .hierarchy import TypeHierarchyIndex
from .models import (
    AuditResults,
    CapabilityTaxonomy,
    EventType,
    InheritanceFailure,
    MismatchFailure,
    ResolutionFailure,
    UndocumentedType,
)
from .policy import AuditPolicy
from .registry import RequirementRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class DocumentedSets:
    """Documented members for every type that has them.

    Attributes:
        by_taxonomy: taxonomy -> type name -> documented members
        undocumented: Types without a description
        resolution_failures: References that could not be resolved; the
            affected type/taxonomy pairs are absent from by_taxonomy
    """
    by_taxonomy: dict[str, dict[str, frozenset[str]]] = field(default_factory=dict)
    undocumented: tuple[UndocumentedType, ...] = ()
    resolution_failures: tuple[ResolutionFailure, ...] = ()

    def get(self, taxonomy: str, type_name: str) -> Optional[frozenset[str]]:
        return self.by_taxonomy.get(taxonomy, {}).get(type_name)


class ConsistencyChecker:
    """Compares documentation against derivation for every type in the index.

    Example:
        checker = ConsistencyChecker(index, DocumentationExtractor(), registry)
        results = checker.run()
        assert results.passed
    """

    def __init__(
        self,
        index: TypeHierarchyIndex,
        extractor: DocumentationExtractor,
        registry: RequirementRegistry,
        taxonomies: Optional[Sequence[CapabilityTaxonomy]] = None,
        policy: Optional[AuditPolicy] = None,
        workers: int = 1,
    ) -> None:
        self.index = index
        self.extractor = extractor
        self.registry = registry
        self.taxonomies = tuple(taxonomies) if taxonomies is not None else registry.taxonomies
        self.policy = policy or AuditPolicy()
        self.workers = max(1, workers)
        self._order = {t.name: i for i, t in enumerate(self.taxonomies)}

    def _map(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Apply fn to every item, on a thread pool when workers > 1.

        Results keep the order of items, so output never depends on scheduling.
        """
        items = list(items)
        if self.workers == 1 or len(items) < 2:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(fn, items))

    def _sort_key(self, taxonomy: str, type_name: str, other: str = "") -> tuple[int, str, str]:
        return (self._order.get(taxonomy, len(self._order)), type_name, other)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _extract_type(
        self, event_type: EventType
    ) -> tuple[dict[str, frozenset[str]], list[ResolutionFailure]]:
        documented: dict[str, frozenset[str]] = {}
        failures: list[ResolutionFailure] = []
        for taxonomy in self.taxonomies:
            try:
                members = self.extractor.extract(event_type, taxonomy)
            except ReferenceResolutionError as e:
                logger.error("Unresolvable reference %s in %s", e.reference, e.type_name)
                failures.append(ResolutionFailure(e.type_name, taxonomy.name, e.reference))
                continue
            if members is not None:
                documented[taxonomy.name] = members
        return documented, failures

    def collect_documented(self) -> DocumentedSets:
        """Extract documented members of every type for every taxonomy."""
        types = self.index.types
        extracted = self._map(self._extract_type, types)

        by_taxonomy: dict[str, dict[str, frozenset[str]]] = {t.name: {} for t in self.taxonomies}
        undocumented: list[UndocumentedType] = []
        failures: list[ResolutionFailure] = []
        for event_type, (documented, type_failures) in zip(types, extracted):
            if event_type.description is None:
                logger.warning("Undocumented class at %s", event_type.name)
                undocumented.append(UndocumentedType(event_type.name))
                continue
            for taxonomy, members in documented.items():
                by_taxonomy[taxonomy][event_type.name] = members
            failures.extend(type_failures)

        failures.sort(key=lambda f: self._sort_key(f.taxonomy, f.type_name, f.reference))
        return DocumentedSets(
            by_taxonomy=by_taxonomy,
            undocumented=tuple(undocumented),
            resolution_failures=tuple(failures),
        )

    # ------------------------------------------------------------------
    # Mismatch check
    # ------------------------------------------------------------------

    def expected_members(self, type_name: str, taxonomy: str, documented: frozenset[str]) -> frozenset[str]:
        """Documented members that the derivation is expected to return."""
        return (
            documented
            - self.policy.exceptions.for_type(type_name, taxonomy)
            - self.policy.ignored_members_of(taxonomy)
        )

    def _mismatches_for(self, item: tuple[EventType, str, frozenset[str]]) -> Optional[MismatchFailure]:
        event_type, taxonomy, documented = item
        expected = self.expected_members(event_type.name, taxonomy, documented)
        derived = self.registry.required_for(event_type, taxonomy)
        if expected == derived:
            return None
        return MismatchFailure(event_type.name, taxonomy, expected, derived)

    def _comparisons(self, documented: DocumentedSets) -> list[tuple[EventType, str, frozenset[str]]]:
        items = []
        for taxonomy in self.taxonomies:
            for type_name, members in sorted(documented.by_taxonomy.get(taxonomy.name, {}).items()):
                if self.policy.is_ignored(type_name, taxonomy.name):
                    continue
                items.append((self.index.get(type_name), taxonomy.name, members))
        return items

    def check_mismatches(self, documented: DocumentedSets) -> tuple[MismatchFailure, ...]:
        """Compare documented against derived members for every documented type.

        Raises:
            DerivationError: If the derivation function fails for any type.
        """
        results = self._map(self._mismatches_for, self._comparisons(documented))
        failures = [f for f in results if f is not None]
        failures.sort(key=lambda f: self._sort_key(f.taxonomy, f.type_name))
        return tuple(failures)

    # ------------------------------------------------------------------
    # Inheritance check
    # ------------------------------------------------------------------

    def check_inheritance(self, documented: DocumentedSets) -> tuple[InheritanceFailure, ...]:
        """Check that documented subtypes restate the members of documented ancestors."""
        failures: list[InheritanceFailure] = []
        for taxonomy in self.taxonomies:
            members_by_type = documented.by_taxonomy.get(taxonomy.name, {})
            for type_name, type_members in sorted(members_by_type.items()):
                if not type_members:
                    continue
                for subtype in self.index.subtypes_of(type_name):
                    subtype_members = members_by_type.get(subtype.name)
                    if subtype_members is None:
                        continue
                    if self.policy.exemptions.is_exempt(subtype.name, taxonomy.name):
                        continue
                    missing = (
                        type_members
                        - subtype_members
                        - self.policy.exceptions.for_type(subtype.name, taxonomy.name)
                    )
                    if missing:
                        failures.append(InheritanceFailure(
                            type_name=subtype.name,
                            taxonomy=taxonomy.name,
                            missing=missing,
                            ancestor=type_name,
                        ))

        failures.sort(key=lambda f: self._sort_key(f.taxonomy, f.type_name, f.ancestor))
        return tuple(failures)

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(self) -> AuditResults:
        """Run both checks over the whole universe.

        Raises:
            DerivationError: If the derivation function fails for any type.
        """
        documented = self.collect_documented()
        comparisons = self._comparisons(documented)
        total = sum(len(members) for members in documented.by_taxonomy.values())

        mismatches = self.check_mismatches(documented)
        inheritance_failures = self.check_inheritance(documented)

        logger.info(
            "Checked %d types: %d mismatches, %d inheritance failures, %d unresolved references",
            len(self.index),
            len(mismatches),
            len(inheritance_failures),
            len(documented.resolution_failures),
        )
        return AuditResults(
            taxonomies=tuple(t.name for t in self.taxonomies),
            mismatches=mismatches,
            inheritance_failures=inheritance_failures,
            resolution_failures=documented.resolution_failures,
            undocumented=documented.undocumented,
            types_discovered=len(self.index),
            comparisons=len(comparisons),
            ignored=total - len(comparisons),
        )
