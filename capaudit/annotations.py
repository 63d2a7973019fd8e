"""Structured capability declarations attached to event classes.

Host libraries that do not have their own derivation logic can declare
requirements directly on their event classes and use
``derive_from_declarations`` as the authoritative derivation function::

    @declare("GatewayIntent", always=[GatewayIntent.GUILD_MEMBERS])
    @declare("Permission", sometimes=[Permission.VIEW_AUDIT_LOGS])
    class GuildMemberRemoveEvent(GenericGuildEvent):
        ...

``always`` members are required for the event to fire. ``sometimes``
members are documented as possible but only needed under certain conditions;
they are never derived, and ``declared_exceptions`` turns them into
exception entries so documenting them does not count as a mismatch.

Declarations are inherited along the MRO unless a subclass declares the
same taxonomy with ``override=True``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Union

from .hierarchy import TypeHierarchyIndex
from .policy import ExceptionEntry, ExceptionTable

DECLARATIONS_ATTR = "__capabilities__"

Member = Union[str, Enum]


@dataclass(frozen=True)
class Declaration:
    always: frozenset[str] = frozenset()
    sometimes: frozenset[str] = frozenset()
    override: bool = False


def _names(members: Iterable[Member]) -> frozenset[str]:
    return frozenset(m.name if isinstance(m, Enum) else str(m) for m in members)


def declare(
    taxonomy: str,
    always: Iterable[Member] = (),
    sometimes: Iterable[Member] = (),
    override: bool = False,
) -> Callable[[type], type]:
    """Class decorator attaching a declaration for one taxonomy."""

    def decorator(cls: type) -> type:
        own = dict(cls.__dict__.get(DECLARATIONS_ATTR, {}))
        previous = own.get(taxonomy, Declaration())
        own[taxonomy] = Declaration(
            always=previous.always | _names(always),
            sometimes=previous.sometimes | _names(sometimes),
            override=previous.override or override,
        )
        setattr(cls, DECLARATIONS_ATTR, own)
        return cls

    return decorator


def own_declaration(cls: type, taxonomy: str) -> Declaration:
    """Declaration made on the class itself, ignoring its bases."""
    return cls.__dict__.get(DECLARATIONS_ATTR, {}).get(taxonomy, Declaration())


def _collect(cls: type, taxonomy: str, attribute: str) -> frozenset[str]:
    members: set[str] = set()
    for klass in cls.__mro__:
        declaration = klass.__dict__.get(DECLARATIONS_ATTR, {}).get(taxonomy)
        if declaration is None:
            continue
        members |= getattr(declaration, attribute)
        if declaration.override:
            break
    return frozenset(members)


def always_required(cls: type, taxonomy: str) -> frozenset[str]:
    return _collect(cls, taxonomy, "always")


def sometimes_required(cls: type, taxonomy: str) -> frozenset[str]:
    return _collect(cls, taxonomy, "sometimes")


def derive_from_declarations(taxonomy: str) -> Callable[[Any], frozenset[str]]:
    """Derivation function answering the 'always' members declared for a class.

    Types known only by name (no class object) require nothing.
    """

    def derive(subject: Any) -> frozenset[str]:
        if not isinstance(subject, type):
            return frozenset()
        return always_required(subject, taxonomy)

    derive.__name__ = f"derive_{taxonomy}"
    return derive


def declared_exceptions(index: TypeHierarchyIndex, taxonomies: Iterable[str]) -> ExceptionTable:
    """Exception entries for every 'sometimes' member declared in the universe."""
    taxonomies = list(taxonomies)
    entries = []
    for event_type in index.types:
        if event_type.py_type is None:
            continue
        for taxonomy in taxonomies:
            members = sometimes_required(event_type.py_type, taxonomy)
            if members:
                entries.append(ExceptionEntry(event_type.name, taxonomy, members))
    return ExceptionTable(entries)
