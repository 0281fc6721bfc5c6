"""Tests for config loader functionality."""

import os
import pytest
import tempfile
import yaml

from examiner_panel.libs.config_loader import (
    get_config, get_config_dir, load_all_configs, load_configs, load_default_configs
)


def test_load_single_config():
    """Test loading a single config file."""
    config_data = {
        "openai": {"model": "kimi-latest"},
        "grading": {"deadline": 40}
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)
        temp_path = f.name

    try:
        result = load_configs(temp_path)
        assert result == config_data
    finally:
        os.unlink(temp_path)


def test_load_multiple_configs_merge():
    """Later files override earlier ones key by key."""
    config1 = {
        "openai": {"model": "kimi-latest", "api_key": ""},
        "grading": {"dimension": {"timeout": 25, "temperature": 0.2}}
    }
    config2 = {
        "openai": {"api_key": "secret"},
        "grading": {"dimension": {"timeout": 10}}
    }

    expected = {
        "openai": {"model": "kimi-latest", "api_key": "secret"},
        "grading": {"dimension": {"timeout": 10, "temperature": 0.2}}
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f1:
        yaml.dump(config1, f1)
        temp_path1 = f1.name

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f2:
        yaml.dump(config2, f2)
        temp_path2 = f2.name

    try:
        result = load_configs(temp_path1, temp_path2)
        assert result == expected
    finally:
        os.unlink(temp_path1)
        os.unlink(temp_path2)


def test_load_missing_file():
    """Test that missing files are skipped with warning."""
    config_data = {"grading": {"deadline": 40}}

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)
        temp_path = f.name

    try:
        result = load_configs(temp_path, "nonexistent.yaml")
        assert result == config_data
    finally:
        os.unlink(temp_path)


def test_empty_file_is_skipped(tmp_path):
    """An empty YAML file contributes nothing."""
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    full = tmp_path / "full.yaml"
    full.write_text("grading:\n  deadline: 12\n")

    assert load_configs(str(empty), str(full)) == {"grading": {"deadline": 12}}


def test_no_configs_loaded():
    """Test that ValueError is raised when no configs are loaded."""
    with pytest.raises(ValueError, match="No configs loaded"):
        load_configs("nonexistent1.yaml", "nonexistent2.yaml")


def test_invalid_yaml_type():
    """Test that TypeError is raised for non-dict YAML."""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write("just a string, not a dict")
        temp_path = f.name

    try:
        with pytest.raises(TypeError, match="must be a dict"):
            load_configs(temp_path)
    finally:
        os.unlink(temp_path)


def test_get_config():
    """Test getting config values by dot-separated key."""
    config = {
        "grading": {
            "deadline": None,
            "dimension": {
                "timeout": 25,
                "max_tokens": 1500
            }
        },
        "tools": {"max_concurrent": 4}
    }

    assert get_config("grading.dimension.timeout", config) == 25
    assert get_config("grading.dimension.max_tokens", config) == 1500
    assert get_config("tools.max_concurrent", config) == 4
    assert get_config("grading.deadline", config, default=40) is None

    with pytest.raises(KeyError):
        get_config("nonexistent.key", config)

    with pytest.raises(KeyError):
        get_config("grading.dimension.nonexistent", config)

    with pytest.raises(KeyError):
        get_config("tools.max_concurrent.value", config)


def test_get_config_default():
    """A default is returned instead of raising when the key is absent."""
    config = {"grading": {"dimension": {"timeout": 25}}}

    assert get_config("grading.consensus.timeout", config, default=15) == 15
    assert get_config("grading.dimension.timeout.inner", config, default="x") == "x"
    assert get_config("openai.api_key", {}, default=None) is None


def test_load_all_configs_orders_default_first(tmp_path):
    """default.yaml is loaded before the other files regardless of name."""
    (tmp_path / "a_overrides.yaml").write_text("grading:\n  deadline: 10\n")
    (tmp_path / "default.yaml").write_text("grading:\n  deadline: 40\n  annotations:\n    limit: 8\n")
    (tmp_path / "notes.txt").write_text("ignored")

    config = load_all_configs(str(tmp_path))
    assert config == {"grading": {"deadline": 10, "annotations": {"limit": 8}}}


def test_load_all_configs_missing_dir(tmp_path):
    with pytest.raises(ValueError, match="Config directory not found"):
        load_all_configs(str(tmp_path / "missing"))


def test_load_default_configs_integration():
    """The committed default.yaml carries the grading settings."""
    default_config_path = os.path.join(get_config_dir(), "default.yaml")

    if os.path.exists(default_config_path):
        config = load_default_configs()
        assert isinstance(config, dict)
        assert get_config("grading.dimension.timeout", config) > 0
        assert get_config("openai.model", config)
