"""
settings.py
The persisted Settings aggregate and its JSON file I/O.

File layout (Settings.json)::

    {
      "Current Profile": "Speedrun",
      "Language": "English",
      "Mods Path": "/games/hk/hollow_knight_Data/Managed/Mods",
      "Mod Links": {"Manifest": [ {"Name": "QoL", ..., "Enabled": true, "Installed": true} ]},
      "Profiles": [ {"name": "Speedrun", "mods": ["QoL", "Practice"]} ],
      "Theme": "Dark",
      "Theme Path": ""
    }

Loading is tolerant of trailing garbage after the JSON document (left behind
by older writers that did not truncate the file). Saving is atomic: the data
goes to a temp file in the same directory which is then renamed over the
target.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from Butterfly.app_log import app_log, app_log_warning
from Butterfly.errors import CorruptSettingsError, FilesystemError
from ModLinks.mod_links import LocalModRecord, record_from_json, record_to_json

DEFAULT_LANGUAGE = "English"
DEFAULT_THEME = "Dark"


@dataclass
class Profile:
    name: str
    mods: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {"name": self.name, "mods": list(self.mods)}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Profile:
        """Accepts both the settings-file keys (name/mods) and exported ones (Name/Mods)."""
        name = data.get("name", data.get("Name", ""))
        mods = data.get("mods", data.get("Mods", []))
        if not isinstance(mods, list):
            mods = []
        return cls(name=str(name), mods=[str(m) for m in mods])


@dataclass
class Settings:
    current_profile: str = ""
    language: str = DEFAULT_LANGUAGE
    mods_path: str = ""
    theme: str = DEFAULT_THEME
    theme_path: str = ""
    profiles: list[Profile] = field(default_factory=list)
    mod_links: list[LocalModRecord] = field(default_factory=list)

    def copy(self) -> Settings:
        return copy.deepcopy(self)

    def find_record(self, name: str) -> LocalModRecord | None:
        for record in self.mod_links:
            if record.name == name:
                return record
        return None

    def find_profile(self, name: str) -> Profile | None:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None

    # -- JSON ---------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        return {
            "Current Profile": self.current_profile,
            "Language": self.language,
            "Mods Path": self.mods_path,
            "Mod Links": {"Manifest": [record_to_json(r) for r in self.mod_links]},
            "Profiles": [p.to_json() for p in self.profiles],
            "Theme": self.theme,
            "Theme Path": self.theme_path,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Settings:
        """Build Settings from a decoded document; bad or missing fields keep defaults."""
        settings = cls()

        def _str(key: str, default: str) -> str:
            value = data.get(key, default)
            return value if isinstance(value, str) else default

        settings.current_profile = _str("Current Profile", "")
        settings.language = _str("Language", DEFAULT_LANGUAGE)
        settings.mods_path = _str("Mods Path", "")
        settings.theme = _str("Theme", DEFAULT_THEME)
        settings.theme_path = _str("Theme Path", "")

        profiles = data.get("Profiles", [])
        if isinstance(profiles, list):
            settings.profiles = [Profile.from_json(p) for p in profiles if isinstance(p, dict)]

        mod_links = data.get("Mod Links", {})
        manifests = mod_links.get("Manifest", []) if isinstance(mod_links, dict) else []
        if isinstance(manifests, list):
            settings.mod_links = [record_from_json(m) for m in manifests if isinstance(m, dict)]
        return settings


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------

def decode_settings_text(text: str, source: Path | None = None) -> Settings:
    """
    Decode settings text, recovering the leading JSON document when trailing
    bytes follow it. Raises CorruptSettingsError if no document can be read.
    """
    if not text.strip():
        app_log_warning(f"Settings file {source or ''} is empty, using defaults.")
        return Settings()

    decoder = json.JSONDecoder()
    start = len(text) - len(text.lstrip())
    try:
        data, end = decoder.raw_decode(text, start)
    except json.JSONDecodeError as exc:
        raise CorruptSettingsError(f"Settings file is not valid JSON: {exc.msg}",
                                   path=source) from exc

    if text[end:].strip():
        app_log_warning(
            f"Ignored {len(text) - end} trailing character(s) in settings file {source or ''}")
    if not isinstance(data, dict):
        raise CorruptSettingsError("Settings file does not contain a JSON object", path=source)
    return Settings.from_json(data)


def load_settings(path: Path) -> Settings:
    """Read Settings from *path*; a missing file yields default Settings."""
    if not path.is_file():
        return Settings()
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FilesystemError(f"Could not read settings: {exc.strerror or exc}",
                              path=path) from exc
    return decode_settings_text(text, path)


def save_settings(path: Path, settings: Settings) -> None:
    """Write Settings to *path* atomically (temp file + rename)."""
    temp_path = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(suffix=".json", prefix="settings_", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(settings.to_json(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        Path(temp_path).replace(path)
    except OSError as exc:
        if temp_path is not None:
            Path(temp_path).unlink(missing_ok=True)
        raise FilesystemError(f"Failed to save settings: {exc.strerror or exc}",
                              path=path) from exc
    app_log(f"Successfully saved settings to {path}")
