"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from capaudit.config import (
    AuditConfig,
    ConfigError,
    clear_config_cache,
    get_config,
    load_config,
    parse_config,
)

MINIMAL = {
    "namespace": "mylib.events",
    "taxonomies": [{"name": "Intent", "enum": "mylib.intents:Intent"}],
}


def write_config(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestParseConfig:
    """Tests for parse_config validation and defaults."""

    def test_minimal_defaults(self):
        config = parse_config(dict(MINIMAL))
        assert isinstance(config, AuditConfig)
        assert config.workers == 1
        assert config.base_type == ""
        assert config.link_patterns == []
        assert config.taxonomies[0].deriver == ""
        assert config.policy.declared_exceptions is True
        assert config.logs_path is None

    def test_namespace_required(self):
        with pytest.raises(ConfigError, match="namespace"):
            parse_config({"taxonomies": MINIMAL["taxonomies"]})

    def test_taxonomy_required(self):
        with pytest.raises(ConfigError, match="taxonomy"):
            parse_config({"namespace": "mylib.events"})

    def test_taxonomy_enum_required(self):
        with pytest.raises(ConfigError, match=r"taxonomies\[0\]\.enum"):
            parse_config({"namespace": "x", "taxonomies": [{"name": "Intent"}]})

    def test_duplicate_taxonomy_names(self):
        taxonomy = {"name": "Intent", "enum": "a:B"}
        with pytest.raises(ConfigError, match="Duplicate"):
            parse_config({"namespace": "x", "taxonomies": [taxonomy, taxonomy]})

    @pytest.mark.parametrize("workers", [0, -2, "many"])
    def test_invalid_workers(self, workers):
        with pytest.raises(ConfigError, match="workers"):
            parse_config(dict(MINIMAL, workers=workers))

    def test_exemptions_as_list_apply_everywhere(self):
        config = parse_config(dict(MINIMAL, inheritance_exemptions=["mylib.events.B"]))
        assert config.policy.exempt_everywhere == ["mylib.events.B"]
        assert config.policy.exempt_by_taxonomy == {}

    def test_exemptions_per_taxonomy(self):
        config = parse_config(dict(MINIMAL, inheritance_exemptions={"Intent": ["mylib.events.B"]}))
        assert config.policy.exempt_everywhere == []
        assert config.policy.exempt_by_taxonomy == {"Intent": ["mylib.events.B"]}

    def test_exceptions_and_ignored_types(self):
        config = parse_config(dict(
            MINIMAL,
            exceptions={"mylib.events.A": {"Intent": ["GUILDS"]}},
            ignored_types={"Intent": "mylib.events.C"},
        ))
        assert config.policy.exceptions == {"mylib.events.A": {"Intent": ["GUILDS"]}}
        assert config.policy.ignored_types == {"Intent": ["mylib.events.C"]}

    def test_malformed_exceptions(self):
        with pytest.raises(ConfigError, match="exceptions"):
            parse_config(dict(MINIMAL, exceptions=["mylib.events.A"]))

    def test_env_vars_are_resolved(self, monkeypatch):
        monkeypatch.setenv("CAPAUDIT_NAMESPACE", "otherlib.events")
        config = parse_config(dict(MINIMAL, namespace="${CAPAUDIT_NAMESPACE}"))
        assert config.namespace == "otherlib.events"

    def test_missing_env_var(self, monkeypatch):
        monkeypatch.delenv("CAPAUDIT_UNSET", raising=False)
        with pytest.raises(ConfigError, match="CAPAUDIT_UNSET"):
            parse_config(dict(MINIMAL, namespace="${CAPAUDIT_UNSET}"))

    def test_paths_resolve_against_project_root(self, tmp_path):
        config = parse_config(
            dict(MINIMAL, python_path=["src"], logs_dir=".capaudit/logs"),
            project_root=str(tmp_path),
        )
        assert config.python_paths == [tmp_path / "src"]
        assert config.logs_path == tmp_path / ".capaudit" / "logs"


class TestLoadConfig:
    """Tests for loading capaudit.yaml from disk."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "capaudit.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "capaudit.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="empty"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "capaudit.yaml"
        path.write_text("namespace: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(str(path))

    def test_project_root_is_config_directory(self, tmp_path):
        path = write_config(tmp_path / "capaudit.yaml", MINIMAL)
        config = load_config(str(path))
        assert Path(config.project_root) == tmp_path

    def test_relative_project_root(self, tmp_path):
        (tmp_path / "lib").mkdir()
        path = write_config(tmp_path / "capaudit.yaml", dict(MINIMAL, project_root="lib"))
        assert Path(load_config(str(path)).project_root) == tmp_path / "lib"

    def test_sample_config(self, sample_config_path, fixtures_dir):
        config = load_config(str(sample_config_path))
        assert [t.name for t in config.taxonomies] == ["GatewayIntent", "CacheFlag", "Permission"]
        assert config.python_paths == [fixtures_dir.absolute() / "."]
        assert "GUILD_MESSAGES" in config.taxonomies[0].ignored_members
        assert config.policy.exempt_by_taxonomy["GatewayIntent"] == [
            "sample_events.message.GenericMessageReactionEvent",
            "sample_events.message.MessageReactionAddEvent",
        ]


class TestConfigCache:
    """Tests for get_config caching."""

    def test_cached_until_cleared(self, tmp_path):
        path = write_config(tmp_path / "capaudit.yaml", MINIMAL)
        first = get_config(str(path))
        write_config(path, dict(MINIMAL, namespace="changed"))

        assert get_config(str(path)) is first
        assert get_config(str(path), force_reload=True).namespace == "changed"

        clear_config_cache()
        assert get_config(str(path)) is not first
