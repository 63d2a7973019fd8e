# tests/conftest.py

from enum import Enum
from pathlib import Path

import pytest
from typer.testing import CliRunner

from capaudit.config import clear_config_cache
from capaudit.models import CapabilityTaxonomy

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class Intent(Enum):
    GUILDS = 1
    GUILD_MEMBERS = 2
    GUILD_MESSAGES = 3
    MESSAGE_CONTENT = 4


class CacheFlag(Enum):
    MEMBER_OVERRIDES = 1
    ACTIVITY = 2


class Permission(Enum):
    BAN_MEMBERS = 1
    VIEW_AUDIT_LOGS = 2


@pytest.fixture
def intents():
    return CapabilityTaxonomy.from_enum(Intent)


@pytest.fixture
def cache_flags():
    return CapabilityTaxonomy.from_enum(CacheFlag)


@pytest.fixture
def permissions():
    return CapabilityTaxonomy.from_enum(Permission)


@pytest.fixture
def taxonomies(intents, cache_flags, permissions):
    return [intents, cache_flags, permissions]


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def sample_events_path(monkeypatch):
    """Make the sample event library importable."""
    monkeypatch.syspath_prepend(str(FIXTURES_DIR))
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path():
    return FIXTURES_DIR / "capaudit.yaml"


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _clear_config_cache():
    clear_config_cache()
    yield
    clear_config_cache()


def write_package(root: Path, name: str, modules: dict[str, str]) -> Path:
    """Create an importable package under root from {module_name: source}."""
    package = root / name
    package.mkdir(parents=True)
    (package / "__init__.py").write_text(modules.pop("__init__", ""))
    for module_name, source in modules.items():
        (package / f"{module_name}.py").write_text(source)
    return package


@pytest.fixture
def make_package(tmp_path, monkeypatch):
    """Factory writing a throwaway package and putting it on sys.path."""
    monkeypatch.syspath_prepend(str(tmp_path))

    def factory(name: str, modules: dict[str, str]) -> Path:
        return write_package(tmp_path, name, dict(modules))

    return factory
