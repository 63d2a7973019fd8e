"""One verification run, wired from configuration.

build_engine resolves everything the config names (taxonomy enums,
derivation functions, the base event type), discovers the type universe and
assembles the checker. run_audit runs it and returns the report.
"""

from __future__ import annotations

import importlib
import logging
import sys
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .annotations import declared_exceptions
from .checker import ConsistencyChecker
from .config import AuditConfig, ConfigError
from .extractor import DocumentationExtractor
from .hierarchy import TypeHierarchyIndex
from .logger import AuditLogger
from .models import AuditReport, CapabilityTaxonomy
from .policy import AuditPolicy
from .registry import RequirementRegistry
from .reporter import Reporter

logger = logging.getLogger(__name__)


def load_object(ref: str) -> Any:
    """Import an object referenced as "module.path:attribute".

    Raises:
        ConfigError: If the reference is malformed or cannot be imported.
    """
    module_name, sep, attribute = ref.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigError(f"Expected 'module:attribute', got {ref!r}")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import {module_name}: {e}")
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise ConfigError(f"{module_name} has no attribute {attribute}")
    return target


def _extend_sys_path(config: AuditConfig) -> None:
    for path in reversed(config.python_paths):
        entry = str(path)
        if entry not in sys.path:
            sys.path.insert(0, entry)


def load_taxonomies(config: AuditConfig) -> list[CapabilityTaxonomy]:
    taxonomies = []
    for taxonomy_config in config.taxonomies:
        enum_type = load_object(taxonomy_config.enum)
        if not (isinstance(enum_type, type) and issubclass(enum_type, Enum)):
            raise ConfigError(f"{taxonomy_config.enum} is not an Enum")
        taxonomies.append(CapabilityTaxonomy.from_enum(enum_type, name=taxonomy_config.name))
    return taxonomies


def load_derivers(config: AuditConfig) -> dict[str, Any]:
    derivers = {}
    for taxonomy_config in config.taxonomies:
        if not taxonomy_config.deriver:
            continue
        deriver = load_object(taxonomy_config.deriver)
        if not callable(deriver):
            raise ConfigError(f"{taxonomy_config.deriver} is not callable")
        derivers[taxonomy_config.name] = deriver
    return derivers


def build_policy(
    config: AuditConfig,
    index: TypeHierarchyIndex,
    taxonomies: list[CapabilityTaxonomy],
) -> AuditPolicy:
    """Assemble the checker policy and validate it against the taxonomies.

    Raises:
        ConfigError: If the policy names unknown taxonomies or members.
    """
    policy_config = config.policy
    policy = AuditPolicy.build(
        exceptions=policy_config.exceptions,
        exempt_everywhere=policy_config.exempt_everywhere,
        exempt_by_taxonomy=policy_config.exempt_by_taxonomy,
        ignored_members={t.name: t.ignored_members for t in config.taxonomies},
        ignored_types=policy_config.ignored_types,
    )
    if policy_config.declared_exceptions:
        policy = policy.with_exceptions(
            declared_exceptions(index, [t.name for t in taxonomies])
        )

    unknown = policy.unknown_members(taxonomies)
    if unknown:
        raise ConfigError(f"Policy references unknown capabilities: {', '.join(unknown)}")

    listed = {entry.type_name for entry in policy.exceptions} | policy.exemptions.type_names()
    for types in policy.ignored_types.values():
        listed |= types
    for type_name in sorted(listed):
        if type_name not in index:
            logger.warning("Policy lists %s which is not a discovered type", type_name)

    return policy


@dataclass
class AuditEngine:
    """Fully wired components of one verification run."""
    config: AuditConfig
    index: TypeHierarchyIndex
    taxonomies: list[CapabilityTaxonomy]
    extractor: DocumentationExtractor
    registry: RequirementRegistry
    policy: AuditPolicy
    checker: ConsistencyChecker


def build_engine(config: AuditConfig, workers: Optional[int] = None) -> AuditEngine:
    """Resolve the configuration and discover the type universe.

    Raises:
        ConfigError: If a configured reference cannot be resolved.
        DiscoveryError: If the type universe cannot be built.
    """
    _extend_sys_path(config)

    taxonomies = load_taxonomies(config)
    derivers = load_derivers(config)
    base_type = load_object(config.base_type) if config.base_type else None

    index = TypeHierarchyIndex.discover(
        config.namespace,
        exclude=config.exclude_modules,
        base_type=base_type,
    )
    policy = build_policy(config, index, taxonomies)
    extractor = DocumentationExtractor(config.link_patterns or None)
    registry = RequirementRegistry(taxonomies, derivers)
    checker = ConsistencyChecker(
        index,
        extractor,
        registry,
        taxonomies=taxonomies,
        policy=policy,
        workers=workers if workers is not None else config.workers,
    )
    return AuditEngine(
        config=config,
        index=index,
        taxonomies=taxonomies,
        extractor=extractor,
        registry=registry,
        policy=policy,
        checker=checker,
    )


def run_audit(
    config: AuditConfig,
    workers: Optional[int] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> AuditReport:
    """Run a complete verification pass.

    Args:
        config: Loaded configuration.
        workers: Overrides config.workers when given.
        audit_logger: JSONL run log; defaults to one under config.logs_path
            when logging is configured.

    Raises:
        CapAuditError: On fatal discovery or derivation errors.
        ConfigError: If the configuration cannot be resolved.
    """
    if audit_logger is None and config.logs_path is not None:
        audit_logger = AuditLogger(config.namespace, config.logs_path)

    engine = build_engine(config, workers=workers)
    reporter = Reporter(audit_logger)

    if audit_logger is None:
        return reporter.report(engine.checker.run())

    with audit_logger.run_context(uuid.uuid4().hex[:8]) as log:
        log.info("audit_start", {
            "namespace": config.namespace,
            "taxonomies": [t.name for t in engine.taxonomies],
            "types": len(engine.index),
        })
        return reporter.report(engine.checker.run())
