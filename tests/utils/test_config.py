from __future__ import annotations

import pytest

from skyctl.config import ConfigError, find_config_path, read_raw_config


def test_config_found_in_parent_directory(tmp_path):
    (tmp_path / "skyctl.yaml").write_text("name: api\n", encoding="utf-8")
    nested = tmp_path / "src" / "handlers"
    nested.mkdir(parents=True)
    assert find_config_path(nested) == (tmp_path / "skyctl.yaml").resolve()
    config, path = read_raw_config(cwd=nested)
    assert config == {"name": "api"}
    assert path == (tmp_path / "skyctl.yaml").resolve()


def test_json_config_supported(tmp_path):
    (tmp_path / "skyctl.json").write_text('{"name": "api", "send_metrics": false}', encoding="utf-8")
    config, _ = read_raw_config(cwd=tmp_path)
    assert config["send_metrics"] is False


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        read_raw_config(tmp_path / "missing.yaml")


def test_top_level_must_be_mapping(tmp_path):
    path = tmp_path / "skyctl.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="expected a mapping"):
        read_raw_config(path)


def test_no_config_is_empty():
    assert read_raw_config() == ({}, None)
