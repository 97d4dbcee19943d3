"""Tests for connection profile persistence."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from pekat_vision_sdk.config import AnalyzerConfig
from pekat_vision_sdk.results import ResultType
from pekat_vision_sdk.settings_store import SettingsStore, default_settings_path


def _fake_os(name: str, **env: str) -> SimpleNamespace:
    def getenv(key: str, default=None):
        return env.get(key, default)

    return SimpleNamespace(name=name, getenv=getenv)


def test_default_settings_path_respects_override(monkeypatch, tmp_path):
    override = tmp_path / "team.json"
    monkeypatch.setattr(
        "pekat_vision_sdk.settings_store.os",
        _fake_os("posix", PEKAT_VISION_SETTINGS=str(override), XDG_CONFIG_HOME="/ignored"),
    )

    assert default_settings_path() == override


def test_default_settings_path_per_platform(monkeypatch, tmp_path):
    monkeypatch.setattr(
        "pekat_vision_sdk.settings_store.os", _fake_os("posix", XDG_CONFIG_HOME=str(tmp_path))
    )
    assert default_settings_path() == tmp_path / "pekat_vision" / "profiles.yaml"

    appdata = tmp_path / "Roaming"
    monkeypatch.setattr("pekat_vision_sdk.settings_store.os", _fake_os("nt", APPDATA=str(appdata)))
    assert default_settings_path() == appdata / "pekat_vision" / "profiles.yaml"


def test_profiles_are_stored_side_by_side(tmp_path):
    store = SettingsStore(path=tmp_path / "profiles.yaml")
    local = AnalyzerConfig(
        distribution_path=Path("/opt/pekat"),
        project_path=Path("/projects/bottles"),
        startup_timeout=60,
    )
    remote = AnalyzerConfig(remote_host="line-3", remote_port=8100, result_type=ResultType.HEATMAP)

    store.save(local)
    store.save(remote, "line-3")

    assert store.profiles() == ["default", "line-3"]
    assert store.load().project_path == Path("/projects/bottles")
    assert store.load().startup_timeout == 60
    loaded_remote = store.load("line-3")
    assert loaded_remote.is_remote
    assert loaded_remote.result_type is ResultType.HEATMAP


def test_json_document_layout(tmp_path):
    path = tmp_path / "profiles.json"
    SettingsStore(path=path).save(AnalyzerConfig(api_key="secret"), "cell")

    document = json.loads(path.read_text(encoding="utf-8"))
    assert list(document) == ["profiles"]
    assert document["profiles"]["cell"]["api_key"] == "secret"


def test_missing_file_yields_default_profile(tmp_path):
    store = SettingsStore(path=tmp_path / "missing.yaml")

    assert store.load() == AnalyzerConfig()
    assert store.profiles() == []


def test_unknown_profile_lists_available(tmp_path):
    store = SettingsStore(path=tmp_path / "profiles.yaml")
    store.save(AnalyzerConfig(), "bench")

    with pytest.raises(KeyError, match="bench"):
        store.load("production")


def test_remove_profile(tmp_path):
    store = SettingsStore(path=tmp_path / "profiles.yaml")
    store.save(AnalyzerConfig(), "bench")

    assert store.remove("bench") is True
    assert store.remove("bench") is False
    assert store.profiles() == []


def test_invalid_profile_raises_value_error(tmp_path):
    path = tmp_path / "profiles.json"
    path.write_text(json.dumps({"profiles": {"default": {"ping_interval": -1}}}), encoding="utf-8")

    with pytest.raises(ValueError):
        SettingsStore(path=path).load()


def test_document_without_profiles_mapping_is_rejected(tmp_path):
    path = tmp_path / "profiles.yaml"
    path.write_text("host: localhost\n", encoding="utf-8")

    with pytest.raises(ValueError):
        SettingsStore(path=path).profiles()
