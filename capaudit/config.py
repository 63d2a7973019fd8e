"""
Configuration loading and validation for capaudit.

This module handles:
- Loading capaudit.yaml from the project root
- Environment variable resolution (${VAR} syntax)
- Validation of required fields
- Default values for optional fields
- Caching of the loaded configuration
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_CONFIG_FILE = "capaudit.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


@dataclass
class TaxonomyConfig:
    """One capability taxonomy to audit."""
    name: str                                  # Name used in doc references, e.g. "CacheFlag"
    enum: str                                  # "module.path:EnumClass"
    deriver: str = ""                          # "module.path:function", empty means nothing is derived
    ignored_members: list[str] = field(default_factory=list)  # Stripped from every documented set


@dataclass
class PolicyConfig:
    """Relaxations applied by the consistency checker."""
    exceptions: dict[str, dict[str, list[str]]] = field(default_factory=dict)
    exempt_everywhere: list[str] = field(default_factory=list)
    exempt_by_taxonomy: dict[str, list[str]] = field(default_factory=dict)
    ignored_types: dict[str, list[str]] = field(default_factory=dict)
    declared_exceptions: bool = True           # Treat @declare(sometimes=...) members as exceptions


@dataclass
class AuditConfig:
    """
    Main configuration for capaudit.

    This is the top-level config loaded from capaudit.yaml.
    """
    namespace: str                             # Root package holding the event types
    project_root: str = "."
    python_path: list[str] = field(default_factory=list)  # Extra import roots, relative to project_root
    exclude_modules: list[str] = field(default_factory=list)
    base_type: str = ""                        # "module.path:BaseEvent", empty keeps every class
    workers: int = 1
    link_patterns: list[str] = field(default_factory=list)
    taxonomies: list[TaxonomyConfig] = field(default_factory=list)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    logs_dir: str = ""                         # Empty disables the JSONL run log

    def __post_init__(self) -> None:
        """Convert paths to absolute paths based on project_root."""
        self.project_root = str(Path(self.project_root).absolute())

    @property
    def python_paths(self) -> list[Path]:
        """Absolute import roots."""
        return [Path(self.project_root) / p for p in self.python_path]

    @property
    def logs_path(self) -> Optional[Path]:
        """Absolute path to the logs directory, None when logging is disabled."""
        if not self.logs_dir:
            return None
        return Path(self.project_root) / self.logs_dir


# Module-level cache for the loaded configuration
_config_cache: Optional[AuditConfig] = None


def _resolve_env_vars(value: Any) -> Any:
    """
    Resolve environment variables in a value.

    Supports ${VAR} syntax for environment variable substitution.
    Returns the original value if it's not a string.
    """
    if isinstance(value, str):
        pattern = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

        def replace(match: re.Match) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(f"Environment variable ${{{var_name}}} is not set")
            return env_value

        return pattern.sub(replace, value)

    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]

    return value


def _string_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list")
    return [str(item) for item in value]


def _string_list_map(value: Any, key: str) -> dict[str, list[str]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping")
    return {str(k): _string_list(v, f"{key}.{k}") for k, v in value.items()}


def _parse_taxonomy_config(data: Any, position: int) -> TaxonomyConfig:
    """Parse one taxonomy entry from dict."""
    if not isinstance(data, dict):
        raise ConfigError(f"taxonomies[{position}] must be a mapping")
    if not data.get("name"):
        raise ConfigError(f"taxonomies[{position}].name is required")
    if not data.get("enum"):
        raise ConfigError(f"taxonomies[{position}].enum is required")
    return TaxonomyConfig(
        name=data["name"],
        enum=data["enum"],
        deriver=data.get("deriver", ""),
        ignored_members=_string_list(data.get("ignored_members"), f"taxonomies[{position}].ignored_members"),
    )


def _parse_exceptions(value: Any) -> dict[str, dict[str, list[str]]]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("exceptions must be a mapping of type -> taxonomy -> members")
    return {
        str(type_name): _string_list_map(by_taxonomy, f"exceptions.{type_name}")
        for type_name, by_taxonomy in value.items()
    }


def _parse_policy_config(data: dict[str, Any]) -> PolicyConfig:
    """Parse checker relaxations from the top-level dict.

    inheritance_exemptions is either a list (exempt for every taxonomy)
    or a mapping of taxonomy -> list.
    """
    exemptions = data.get("inheritance_exemptions")
    if isinstance(exemptions, dict):
        exempt_everywhere: list[str] = []
        exempt_by_taxonomy = _string_list_map(exemptions, "inheritance_exemptions")
    else:
        exempt_everywhere = _string_list(exemptions, "inheritance_exemptions")
        exempt_by_taxonomy = {}

    return PolicyConfig(
        exceptions=_parse_exceptions(data.get("exceptions")),
        exempt_everywhere=exempt_everywhere,
        exempt_by_taxonomy=exempt_by_taxonomy,
        ignored_types=_string_list_map(data.get("ignored_types"), "ignored_types"),
        declared_exceptions=bool(data.get("declared_exceptions", True)),
    )


def parse_config(data: dict[str, Any], project_root: str = ".") -> AuditConfig:
    """
    Build an AuditConfig from already loaded data.

    Raises:
        ConfigError: If required fields are missing or malformed.
    """
    data = _resolve_env_vars(data)

    if not data.get("namespace"):
        raise ConfigError("namespace is required")

    raw_taxonomies = data.get("taxonomies")
    if not raw_taxonomies or not isinstance(raw_taxonomies, list):
        raise ConfigError("At least one taxonomy is required")
    taxonomies = [_parse_taxonomy_config(t, i) for i, t in enumerate(raw_taxonomies)]

    names = [t.name for t in taxonomies]
    if len(set(names)) != len(names):
        raise ConfigError(f"Duplicate taxonomy names: {names}")

    try:
        workers = int(data.get("workers", 1))
    except (TypeError, ValueError):
        raise ConfigError("workers must be an integer")
    if workers < 1:
        raise ConfigError("workers must be at least 1")

    return AuditConfig(
        namespace=data["namespace"],
        project_root=data.get("project_root", project_root),
        python_path=_string_list(data.get("python_path"), "python_path"),
        exclude_modules=_string_list(data.get("exclude_modules"), "exclude_modules"),
        base_type=data.get("base_type", ""),
        workers=workers,
        link_patterns=_string_list(data.get("link_patterns"), "link_patterns"),
        taxonomies=taxonomies,
        policy=_parse_policy_config(data),
        logs_dir=data.get("logs_dir", ""),
    )


def load_config(config_path: Optional[str] = None) -> AuditConfig:
    """
    Load configuration from capaudit.yaml.

    Args:
        config_path: Optional path to config file. If not provided,
                     looks for capaudit.yaml in current directory.

    Returns:
        AuditConfig: Loaded and validated configuration. Relative paths
        resolve against the directory holding the config file.

    Raises:
        ConfigError: If config is invalid or cannot be loaded.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    if not raw_data:
        raise ConfigError("Configuration file is empty")
    if not isinstance(raw_data, dict):
        raise ConfigError("Configuration file must contain a mapping")

    config_dir = path.absolute().parent
    root = raw_data.get("project_root")
    project_root = str(config_dir / root) if root else str(config_dir)
    raw_data = {k: v for k, v in raw_data.items() if k != "project_root"}

    return parse_config(raw_data, project_root=project_root)


def get_config(config_path: Optional[str] = None, force_reload: bool = False) -> AuditConfig:
    """
    Get the cached configuration, loading it if necessary.

    Raises:
        ConfigError: If config is invalid or cannot be loaded.
    """
    global _config_cache

    if _config_cache is None or force_reload:
        _config_cache = load_config(config_path)

    return _config_cache


def clear_config_cache() -> None:
    """Clear the configuration cache. Useful for testing."""
    global _config_cache
    _config_cache = None
