"""Tests for loading `.todo_api/config.yaml`."""

from __future__ import annotations

from pathlib import Path

import pytest

from todo_api.config import CacheSettings, get_cache_settings, load_config


def _write_config(project_dir: Path, text: str) -> None:
    state_dir = project_dir / ".todo_api"
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "config.yaml").write_text(text, encoding="utf-8")


def test_missing_config_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path) == ({}, None)
    assert get_cache_settings({}) == CacheSettings()


def test_defaults() -> None:
    settings = CacheSettings()
    assert settings.task_ttl_seconds == 300
    assert settings.dependency_ttl_seconds == 900
    assert settings.invalidate_pages_on_write is False
    assert settings.default_page_size == 20


def test_reads_cache_and_pagination_blocks(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        "cache:\n"
        "  task_ttl_minutes: 1\n"
        "  dependency_ttl_minutes: 2.5\n"
        "  invalidate_pages_on_write: true\n"
        "pagination:\n"
        "  default_page_size: 50\n",
    )
    config, err = load_config(tmp_path)
    assert err is None

    settings = get_cache_settings(config)
    assert settings.task_ttl_seconds == 60
    assert settings.dependency_ttl_seconds == 150
    assert settings.invalidate_pages_on_write is True
    assert settings.default_page_size == 50


def test_invalid_yaml_reports_error(tmp_path: Path) -> None:
    _write_config(tmp_path, "cache: [unclosed")
    config, err = load_config(tmp_path)
    assert config == {}
    assert err and "YAMLError" in err


def test_non_mapping_reports_error(tmp_path: Path) -> None:
    _write_config(tmp_path, "- just\n- a list\n")
    config, err = load_config(tmp_path)
    assert config == {}
    assert "expected object" in err


@pytest.mark.parametrize(
    "raw",
    [0, -5, "soon", True, None, [1]],
)
def test_bad_ttl_values_fall_back(raw) -> None:
    settings = get_cache_settings({"cache": {"task_ttl_minutes": raw}})
    assert settings.task_ttl_minutes == 5


def test_non_bool_invalidate_flag_is_ignored() -> None:
    settings = get_cache_settings({"cache": {"invalidate_pages_on_write": "yes"}})
    assert settings.invalidate_pages_on_write is False


def test_non_dict_blocks_are_ignored() -> None:
    assert get_cache_settings({"cache": "fast", "pagination": 3}) == CacheSettings()
