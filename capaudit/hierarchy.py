"""Event type universe and its supertype/subtype graph.

TypeHierarchyIndex is built either by importing a package and reflecting
over every class it defines, or from an explicit table mapping each type to
its parent. Either way the index is complete before any check runs against
it, and it is never modified afterwards.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from collections import deque
from types import ModuleType
from typing import Iterable, Iterator, Mapping, Optional, Sequence, Union

from .errors import DiscoveryError
from .models import EventType

logger = logging.getLogger(__name__)

TypeRef = Union[str, EventType]


def qualified_name(cls: type) -> str:
    """Fully qualified name of a class, nested classes included."""
    return f"{cls.__module__}.{cls.__qualname__}"


def _clean_description(raw: object) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    text = inspect.cleandoc(raw)
    return text or None


def _generated_docs(cls: type) -> set[str]:
    """Docstrings that dataclasses and NamedTuple write onto undocumented classes."""
    docs = set()
    fields = getattr(cls, "_fields", None)
    if isinstance(fields, tuple):
        docs.add(f"{cls.__name__}({', '.join(fields)})")
    try:
        signature = str(inspect.signature(cls)).replace(" -> None", "")
    except (TypeError, ValueError):
        return docs
    docs.add(cls.__name__ + signature)
    return docs


def _own_description(cls: type) -> Optional[str]:
    raw = cls.__dict__.get("__doc__")
    if isinstance(raw, str) and raw in _generated_docs(cls):
        return None
    return _clean_description(raw)


def _nearest_known(cls: type, known: set[type]) -> list[type]:
    """Closest ancestors of cls inside known, looking through unknown bases."""
    nearest: list[type] = []
    for base in cls.__bases__:
        candidates = [base] if base in known else _nearest_known(base, known)
        for candidate in candidates:
            if candidate not in nearest:
                nearest.append(candidate)
    return nearest


def _is_excluded(module_name: str, exclude: Sequence[str]) -> bool:
    return any(
        module_name == prefix or module_name.startswith(prefix + ".")
        for prefix in exclude
    )


class TypeHierarchyIndex:
    """Immutable index over the event type universe.

    Example:
        index = TypeHierarchyIndex.discover("mylib.events")
        for subtype in index.subtypes_of("mylib.events.GenericGuildEvent"):
            print(subtype.name)
    """

    def __init__(self, types: Iterable[EventType]) -> None:
        self._types: dict[str, EventType] = {t.name: t for t in types}
        self._children: dict[str, list[str]] = {name: [] for name in self._types}
        for event_type in self._types.values():
            for parent in event_type.direct_supertypes:
                if parent not in self._types:
                    raise DiscoveryError(
                        f"{event_type.name} extends unknown type {parent}"
                    )
                self._children[parent].append(event_type.name)
        for children in self._children.values():
            children.sort()
        self._check_acyclic()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def discover(
        cls,
        root_namespace: str,
        exclude: Sequence[str] = (),
        base_type: Optional[type] = None,
    ) -> TypeHierarchyIndex:
        """Scan every class defined under a package.

        Args:
            root_namespace: Dotted name of the package (or module) to scan.
            exclude: Module prefixes whose classes are left out of the universe.
            base_type: If given, only subclasses of this type are kept.

        Raises:
            DiscoveryError: If the namespace cannot be imported or holds no types.
        """
        modules = list(_import_modules(root_namespace, exclude))

        classes: dict[str, type] = {}
        for module in modules:
            for found in _classes_defined_in(module):
                if base_type is not None and not issubclass(found, base_type):
                    continue
                classes[qualified_name(found)] = found

        if not classes:
            raise DiscoveryError(
                f"No types found under {root_namespace}", namespace=root_namespace
            )

        known = set(classes.values())
        types = []
        for name, found in classes.items():
            # Excluded or out-of-namespace intermediates keep their subtypes linked
            parents = [qualified_name(base) for base in _nearest_known(found, known)]
            types.append(EventType(
                name=name,
                supertype=parents[0] if parents else None,
                interfaces=tuple(parents[1:]),
                description=_own_description(found),
                py_type=found,
            ))

        logger.debug("Discovered %d types under %s", len(types), root_namespace)
        return cls(types)

    @classmethod
    def from_mapping(
        cls,
        parents: Mapping[str, Optional[str]],
        descriptions: Optional[Mapping[str, Optional[str]]] = None,
    ) -> TypeHierarchyIndex:
        """Build the index from a statically maintained type -> parent table.

        Raises:
            DiscoveryError: If the table is empty, names an unknown parent or
                contains a cycle.
        """
        if not parents:
            raise DiscoveryError("Type table is empty")
        descriptions = descriptions or {}
        return cls(
            EventType(
                name=name,
                supertype=parent,
                description=_clean_description(descriptions.get(name)),
            )
            for name, parent in parents.items()
        )

    def _check_acyclic(self) -> None:
        for name in self._types:
            seen = {name}
            pending = list(self._types[name].direct_supertypes)
            while pending:
                current = pending.pop()
                if current == name:
                    raise DiscoveryError(f"Type hierarchy contains a cycle through {name}")
                if current in seen:
                    continue
                seen.add(current)
                pending.extend(self._types[current].direct_supertypes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def types(self) -> tuple[EventType, ...]:
        """All types, sorted by name."""
        return tuple(self._types[name] for name in sorted(self._types))

    def get(self, ref: TypeRef) -> EventType:
        """Look up a type by name.

        Raises:
            KeyError: If the type is not part of the universe.
        """
        name = ref.name if isinstance(ref, EventType) else ref
        return self._types[name]

    def find(self, name: str) -> list[EventType]:
        """Types whose qualified or simple name matches."""
        if name in self._types:
            return [self._types[name]]
        return [t for t in self.types if t.simple_name == name]

    def __contains__(self, ref: object) -> bool:
        if isinstance(ref, EventType):
            return ref.name in self._types
        return ref in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[EventType]:
        return iter(self.types)

    def roots(self) -> tuple[EventType, ...]:
        """Types without any supertype inside the universe."""
        return tuple(t for t in self.types if not t.direct_supertypes)

    def direct_subtypes_of(self, ref: TypeRef) -> tuple[EventType, ...]:
        name = self.get(ref).name
        return tuple(self._types[child] for child in self._children[name])

    def subtypes_of(self, ref: TypeRef) -> tuple[EventType, ...]:
        """Every direct or indirect subtype, sorted by name, excluding the type itself."""
        start = self.get(ref).name
        found: set[str] = set()
        queue = deque(self._children[start])
        while queue:
            current = queue.popleft()
            if current in found:
                continue
            found.add(current)
            queue.extend(self._children[current])
        return tuple(self._types[name] for name in sorted(found))

    def ancestors_of(self, ref: TypeRef) -> tuple[EventType, ...]:
        """Every direct or indirect supertype, sorted by name."""
        start = self.get(ref)
        found: set[str] = set()
        queue = deque(start.direct_supertypes)
        while queue:
            current = queue.popleft()
            if current in found:
                continue
            found.add(current)
            queue.extend(self._types[current].direct_supertypes)
        return tuple(self._types[name] for name in sorted(found))


def _import_modules(root_namespace: str, exclude: Sequence[str]) -> Iterator[ModuleType]:
    try:
        root = importlib.import_module(root_namespace)
    except ImportError as e:
        raise DiscoveryError(
            f"Cannot import {root_namespace}: {e}", namespace=root_namespace
        ) from e

    if not _is_excluded(root.__name__, exclude):
        yield root

    # Plain modules have no submodules to walk
    if not hasattr(root, "__path__"):
        return

    def on_error(name: str) -> None:
        raise DiscoveryError(f"Cannot scan package {name}", namespace=root_namespace)

    for info in pkgutil.walk_packages(root.__path__, prefix=root.__name__ + ".", onerror=on_error):
        if _is_excluded(info.name, exclude):
            continue
        try:
            yield importlib.import_module(info.name)
        except Exception as e:
            raise DiscoveryError(
                f"Cannot import {info.name}: {e}", namespace=root_namespace
            ) from e


def _classes_defined_in(module: ModuleType) -> Iterator[type]:
    for value in list(vars(module).values()):
        if isinstance(value, type) and value.__module__ == module.__name__:
            yield from _with_nested(value)


def _with_nested(cls: type) -> Iterator[type]:
    yield cls
    for value in list(vars(cls).values()):
        if (
            isinstance(value, type)
            and value.__module__ == cls.__module__
            and value.__qualname__.startswith(cls.__qualname__ + ".")
        ):
            yield from _with_nested(value)
