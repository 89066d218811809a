"""
Unit tests for core.yaml module.

Tests:
- load_yaml() with valid, empty and missing files
- Invalid YAML and non-mapping roots raise ConfigurationError
- safe_load refuses Python object tags
"""

import pytest

from nostrpool.core.exceptions import ConfigurationError
from nostrpool.core.yaml import load_yaml


class TestLoadYaml:
    """load_yaml() behaviour."""

    def test_valid(self, tmp_path):
        path = tmp_path / "pool.yaml"
        path.write_text("relays:\n  - wss://relay.example.com\ntrack_relays: true\n")
        assert load_yaml(path) == {"relays": ["wss://relay.example.com"], "track_relays": True}

    def test_str_path(self, tmp_path):
        path = tmp_path / "pool.yaml"
        path.write_text("track_relays: false\n")
        assert load_yaml(str(path)) == {"track_relays": False}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("relays: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(path)

    def test_list_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml(path)

    def test_python_tags_refused(self, tmp_path):
        path = tmp_path / "unsafe.yaml"
        path.write_text("x: !!python/object/apply:os.system ['true']\n")
        with pytest.raises(ConfigurationError):
            load_yaml(path)
