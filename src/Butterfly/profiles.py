"""
profiles.py
Named mod profiles: create, delete, activate, export and import.

The mutators here operate on a Settings draft handed out by
SettingsStore.update(), so each call is one locked read-modify-write.

Export format::

    {"Profiles": [{"Name": "Speedrun", "Mods": ["QoL", "Practice"]}]}
"""

from __future__ import annotations

import json
from pathlib import Path

from Butterfly.app_log import app_log, app_log_warning
from Butterfly.errors import DuplicateNameError, FilesystemError, NotFoundError
from Butterfly.settings import Profile, Settings


def create_profile(settings: Settings, name: str, mod_names: list[str]) -> Profile:
    """Append a new profile. Names must be non-empty and unique."""
    name = name.strip()
    if not name:
        raise DuplicateNameError("Profile name must not be empty")
    if settings.find_profile(name) is not None:
        raise DuplicateNameError(f"A profile named {name!r} already exists")
    profile = Profile(name=name, mods=list(dict.fromkeys(mod_names)))
    settings.profiles.append(profile)
    return profile


def delete_profile(settings: Settings, name: str) -> None:
    """Remove a profile; clears the active profile if it was the one removed."""
    if settings.find_profile(name) is None:
        raise NotFoundError(f"No profile named {name!r}")
    settings.profiles = [p for p in settings.profiles if p.name != name]
    if settings.current_profile == name:
        settings.current_profile = ""


def set_current_profile(settings: Settings, name: str) -> None:
    """Mark *name* active; an empty name clears the active profile."""
    if name and settings.find_profile(name) is None:
        raise NotFoundError(f"No profile named {name!r}")
    settings.current_profile = name


def export_profiles(settings: Settings, names: list[str], dest: Path) -> int:
    """Write the named profiles to *dest*. Returns how many were exported."""
    wanted = set(names)
    export = [{"Name": p.name, "Mods": list(p.mods)}
              for p in settings.profiles if p.name in wanted]
    missing = wanted - {p["Name"] for p in export}
    if missing:
        app_log_warning(f"Skipped unknown profile(s) on export: {', '.join(sorted(missing))}")
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(json.dumps({"Profiles": export}, indent=2), encoding="utf-8")
    except OSError as exc:
        raise FilesystemError(f"Failed to export profiles: {exc.strerror or exc}",
                              path=dest) from exc
    app_log(f"Successfully exported {len(export)} profile(s) to {dest}")
    return len(export)


def read_profiles_file(src: Path) -> list[Profile]:
    """Parse an exported profiles file."""
    try:
        data = json.loads(src.read_text(encoding="utf-8"))
    except OSError as exc:
        raise FilesystemError(f"Could not read profiles file: {exc.strerror or exc}",
                              path=src) from exc
    except json.JSONDecodeError as exc:
        raise FilesystemError(f"Profiles file is not valid JSON: {exc.msg}", path=src) from exc
    entries = data.get("Profiles", []) if isinstance(data, dict) else []
    if not isinstance(entries, list):
        return []
    return [Profile.from_json(e) for e in entries if isinstance(e, dict)]


def import_profiles(settings: Settings, profiles: list[Profile]) -> list[str]:
    """Append *profiles*, skipping names that already exist. Returns imported names."""
    imported: list[str] = []
    for profile in profiles:
        if not profile.name or settings.find_profile(profile.name) is not None:
            app_log_warning(f"Skipped imported profile {profile.name!r}: name already in use")
            continue
        settings.profiles.append(Profile(name=profile.name, mods=list(profile.mods)))
        imported.append(profile.name)
    return imported
