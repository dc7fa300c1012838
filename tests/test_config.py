"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from plaza.config import PlazaConfig, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_minimal_file_uses_defaults(tmp_path):
    cfg = load_config(_write(tmp_path, 'site_name: "Tiny"\n'))
    assert cfg.site_name == "Tiny"
    assert cfg.admin_username is None
    assert cfg.registration_bonus == 100
    assert cfg.admin_bonus == 10000
    assert cfg.session_lifetime_hours == 24
    assert cfg.rate_limit_requests == 100
    assert cfg.rate_limit_window_seconds == 900
    assert cfg.banned_words == ()


def test_overrides_are_read(tmp_path):
    cfg = load_config(_write(tmp_path, """
site_name: "Plaza"
admin_username: "root"
registration_bonus: 50
chat_history_size: 5
banned_words:
  - darn
  - heck
"""))
    assert cfg.admin_username == "root"
    assert cfg.registration_bonus == 50
    assert cfg.chat_history_size == 5
    assert cfg.banned_words == ("darn", "heck")


def test_blank_admin_username_means_none(tmp_path):
    cfg = load_config(_write(tmp_path, 'site_name: "P"\nadmin_username: ""\n'))
    assert cfg.admin_username is None


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_missing_site_name(tmp_path):
    with pytest.raises(KeyError):
        load_config(_write(tmp_path, "registration_bonus: 5\n"))


def test_config_is_immutable():
    cfg = PlazaConfig(site_name="x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.site_name = "y"


def test_shipped_example_parses():
    example = Path(__file__).parent.parent / "config.yaml.example"
    cfg = load_config(example)
    assert cfg.site_name
