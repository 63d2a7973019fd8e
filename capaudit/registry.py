"""Adapter over the authoritative requirement derivation functions.

The host library owns the derivation logic (for example a
``GatewayIntent.from_events(event_class)`` helper). This module only invokes
it and normalizes the answer; whatever it returns is ground truth for the
comparison.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .errors import DerivationError
from .models import CapabilityTaxonomy, EventType, RequirementSet

Deriver = Callable[[Any], Iterable[Union[str, Enum]]]


class RequirementRegistry:
    """Derived requirements per type and taxonomy.

    A taxonomy without a deriver requires nothing for every type.
    """

    def __init__(
        self,
        taxonomies: Iterable[CapabilityTaxonomy],
        derivers: Mapping[str, Deriver],
    ) -> None:
        self._taxonomies = {t.name: t for t in taxonomies}
        unknown = set(derivers) - set(self._taxonomies)
        if unknown:
            raise ValueError(f"Derivers given for unknown taxonomies: {sorted(unknown)}")
        self._derivers = dict(derivers)

    @property
    def taxonomies(self) -> tuple[CapabilityTaxonomy, ...]:
        return tuple(self._taxonomies.values())

    def deriver_for(self, taxonomy: str) -> Optional[Deriver]:
        return self._derivers.get(taxonomy)

    def required_for(
        self, event_type: EventType, taxonomy: Union[str, CapabilityTaxonomy]
    ) -> frozenset[str]:
        """Members of a taxonomy the derivation function requires for a type.

        Raises:
            DerivationError: If the derivation function raises or answers
                with a member outside the taxonomy.
        """
        name = taxonomy.name if isinstance(taxonomy, CapabilityTaxonomy) else taxonomy
        domain = self._taxonomies[name]
        deriver = self._derivers.get(name)
        if deriver is None:
            return frozenset()

        subject = event_type.py_type if event_type.py_type is not None else event_type
        try:
            raw_members = deriver(subject)
            members = list(raw_members) if raw_members is not None else []
        except Exception as e:
            raise DerivationError(event_type.name, name, str(e) or type(e).__name__, cause=e) from e

        try:
            return domain.resolve_all(members)
        except KeyError as e:
            raise DerivationError(
                event_type.name, name, f"unknown member {e.args[0]}"
            ) from e

    def required_all(self, event_type: EventType) -> RequirementSet:
        """Derived members of every taxonomy for a type."""
        return RequirementSet(members={
            name: self.required_for(event_type, name) for name in self._taxonomies
        })
