"""Named connection profiles shared by the CLI and library callers."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import AnalyzerConfig

DEFAULT_PROFILE = "default"
SETTINGS_ENV = "PEKAT_VISION_SETTINGS"

_YAML_SUFFIXES = {".yaml", ".yml"}


class SettingsStore:
    """Keeps several :class:`AnalyzerConfig` profiles in one document.

    The document has a single top-level ``profiles`` mapping from profile name
    to the settings used by :meth:`Analyzer.from_config`; a local profile
    names a distribution and project, a remote one a host and port. The file
    is YAML unless its suffix is ``.json``.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or default_settings_path()

    @property
    def path(self) -> Path:
        return self._path

    def profiles(self) -> list[str]:
        return sorted(self._read_profiles())

    def load(self, profile: str = DEFAULT_PROFILE) -> AnalyzerConfig:
        """Return the named profile; an absent default profile yields defaults."""
        stored = self._read_profiles()
        if profile not in stored:
            if profile == DEFAULT_PROFILE:
                return AnalyzerConfig()
            available = ", ".join(sorted(stored)) or "none"
            raise KeyError(f"Unknown profile '{profile}' in {self._path}. Available: {available}")
        try:
            return AnalyzerConfig.model_validate(stored[profile])
        except ValidationError as exc:
            raise ValueError(f"Profile '{profile}' in {self._path} is invalid: {exc}") from exc

    def save(self, config: AnalyzerConfig, profile: str = DEFAULT_PROFILE) -> None:
        stored = self._read_profiles()
        stored[profile] = config.as_dict()
        self._write_profiles(stored)

    def remove(self, profile: str) -> bool:
        stored = self._read_profiles()
        if stored.pop(profile, None) is None:
            return False
        self._write_profiles(stored)
        return True

    def _read_profiles(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        text = self._path.read_text(encoding="utf-8")
        if self._is_yaml:
            document = yaml.safe_load(text)
        else:
            document = json.loads(text) if text.strip() else None
        if document is None:
            return {}
        profiles = document.get("profiles") if isinstance(document, dict) else None
        if not isinstance(profiles, dict):
            raise ValueError(f"{self._path} must contain a 'profiles' mapping.")
        return dict(profiles)

    def _write_profiles(self, profiles: dict[str, Any]) -> None:
        document = {"profiles": profiles}
        if self._is_yaml:
            text = yaml.safe_dump(document, sort_keys=True)
        else:
            text = json.dumps(document, indent=2, sort_keys=True) + "\n"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(text, encoding="utf-8")

    @property
    def _is_yaml(self) -> bool:
        return self._path.suffix.lower() in _YAML_SUFFIXES or self._path.suffix == ""


def default_settings_path() -> Path:
    """``$PEKAT_VISION_SETTINGS`` or ``profiles.yaml`` in the per-user config directory."""
    override = os.getenv(SETTINGS_ENV)
    if override:
        return Path(override).expanduser()
    if os.name == "nt":
        root = os.getenv("APPDATA") or str(Path.home() / "AppData" / "Roaming")
    else:
        root = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(root).expanduser() / "pekat_vision" / "profiles.yaml"
