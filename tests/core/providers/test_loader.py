"""
Tests for provider file discovery and loading.
"""

import json

import pytest

from authgate.common.exceptions import ConfigurationError
from authgate.core.providers.loader import deep_merge, discover_config_files, load_provider_configs


def write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


def test_discovery_order(tmp_path):
    for name in [
        "providers.local.json",
        "providers.py",
        "providers.json",
        "providers-production.yaml",
        "providers.production.json",
        "providers.yml",
        "providers.staging.json",
        "other.json",
    ]:
        (tmp_path / name).write_text("{}", encoding="utf-8")

    files = [p.name for p in discover_config_files(tmp_path, "production")]
    assert files == [
        "providers.json",
        "providers.yml",
        "providers.py",
        "providers.production.json",
        "providers-production.yaml",
        "providers.local.json",
    ]


def test_later_files_win(tmp_path):
    write(tmp_path / "providers.json", {"github": {"clientID": "generic", "scope": "user", "link": False}})
    (tmp_path / "providers.test.yaml").write_text(
        "github:\n  clientID: from-env\ngitlab:\n  clientID: gl\n", encoding="utf-8"
    )
    write(tmp_path / "providers.local.json", {"github": {"link": True}})

    providers = load_provider_configs(tmp_path, "test")

    assert providers == {
        "github": {"clientID": "from-env", "scope": "user", "link": True},
        "gitlab": {"clientID": "gl"},
    }


def test_python_provider_file(tmp_path):
    (tmp_path / "providers.py").write_text(
        'PROVIDERS = {"ldap": {"authScheme": "ldap", "module": "x.y"}}\n', encoding="utf-8"
    )
    assert load_provider_configs(tmp_path) == {"ldap": {"authScheme": "ldap", "module": "x.y"}}


def test_empty_yaml_file(tmp_path):
    (tmp_path / "providers.yaml").write_text("", encoding="utf-8")
    assert load_provider_configs(tmp_path) == {}


def test_non_mapping_file(tmp_path):
    write(tmp_path / "providers.json", ["github"])
    with pytest.raises(ConfigurationError, match="must define a mapping"):
        load_provider_configs(tmp_path)


def test_invalid_json_file(tmp_path):
    (tmp_path / "providers.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="failed to load provider file"):
        load_provider_configs(tmp_path)


def test_missing_directory(tmp_path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        discover_config_files(tmp_path / "missing")
    (tmp_path / "file").write_text("", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="must be a directory"):
        discover_config_files(tmp_path / "file")


def test_deep_merge_copies():
    base = {"a": {"b": 1, "c": [1]}}
    merged = deep_merge(base, {"a": {"b": 2}, "d": 3})
    assert merged == {"a": {"b": 2, "c": [1]}, "d": 3}
    assert base == {"a": {"b": 1, "c": [1]}}
