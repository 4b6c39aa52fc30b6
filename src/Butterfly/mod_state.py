"""
mod_state.py
Derive a mod's installed / enabled state from the mods folder.

Layout::

    <mods_root>/<name>/            enabled mod
    <mods_root>/Disabled/<name>/   disabled mod

Every call stats the filesystem; nothing is cached. A missing Disabled
folder simply means nothing is disabled.
"""

from __future__ import annotations

from pathlib import Path

from Butterfly.errors import FilesystemError

DISABLED_DIR_NAME = "Disabled"

_RESERVED_NAMES = frozenset({"", ".", "..", DISABLED_DIR_NAME})


def is_valid_mod_name(name: str) -> bool:
    """A mod name must be a single folder name below the mods root."""
    return name not in _RESERVED_NAMES and "/" not in name and "\\" not in name


def validate_mod_name(name: str) -> str:
    """Return *name*, or raise FilesystemError if it would escape its mod folder."""
    if not is_valid_mod_name(name):
        raise FilesystemError(f"Invalid mod name {name!r}", mod_name=name)
    return name


def mod_path(mods_root: Path, name: str) -> Path:
    return mods_root / validate_mod_name(name)


def disabled_root(mods_root: Path) -> Path:
    return mods_root / DISABLED_DIR_NAME


def disabled_mod_path(mods_root: Path, name: str) -> Path:
    return mods_root / DISABLED_DIR_NAME / validate_mod_name(name)


def is_installed(mods_root: Path, name: str) -> bool:
    """True if the mod folder exists either enabled or under Disabled/."""
    if not is_valid_mod_name(name):
        return False
    return mod_path(mods_root, name).exists() or disabled_mod_path(mods_root, name).exists()


def is_enabled(mods_root: Path, name: str) -> bool:
    """True if the mod folder exists in the mods root and not under Disabled/."""
    if not is_valid_mod_name(name):
        return False
    return mod_path(mods_root, name).exists() and not disabled_mod_path(mods_root, name).exists()


def installed_folder(mods_root: Path, name: str) -> Path | None:
    """Return whichever folder holds the mod (enabled first), or None."""
    if not is_valid_mod_name(name):
        return None
    for p in (mod_path(mods_root, name), disabled_mod_path(mods_root, name)):
        if p.exists():
            return p
    return None


def scan_mod_folders(mods_root: Path) -> list[tuple[str, bool, Path]]:
    """
    List every mod folder on disk as ``(name, enabled, folder)``.

    Files and the Disabled folder itself are skipped.
    """
    found: list[tuple[str, bool, Path]] = []
    roots = [(mods_root, True)]
    if disabled_root(mods_root).is_dir():
        roots.append((disabled_root(mods_root), False))
    for root, enabled in roots:
        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name.lower())
        except OSError:
            continue
        for entry in entries:
            if not entry.is_dir():
                continue
            if enabled and entry.name == DISABLED_DIR_NAME:
                continue
            found.append((entry.name, enabled, entry))
    return found
