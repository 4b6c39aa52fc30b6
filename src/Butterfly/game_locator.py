"""
game_locator.py
Find the Hollow Knight installation and its mods folder.

Each resolver exposes ``resolve() -> Path | None`` and returns the mods
root (``<game>/<data dir>/Managed/Mods``) or None when it cannot find one.
A prompter exposes ``prompt(title, filters) -> Path | None`` and asks the user for
the game folder; StaticPrompter answers without asking.
"""

from __future__ import annotations

import os
import platform
import re
from pathlib import Path

from Butterfly.app_log import app_log, app_log_warning
from Butterfly.errors import FilesystemError
from Butterfly.state_store import SettingsStore

GAME_FOLDER_NAME = "Hollow Knight"

# Managed folder relative to the game folder: GOG, Steam, macOS bundle.
MANAGED_SUFFIXES = (
    "Hollow Knight_Data/Managed",
    "hollow_knight_Data/Managed",
    "Contents/Resources/Data/Managed",
)

# Game folder relative to a drive root or the user data dir.
STATIC_GAME_PATHS = (
    "Program Files/Steam/steamapps/common/Hollow Knight",
    "Program Files (x86)/Steam/steamapps/common/Hollow Knight",
    "Program Files/GOG Galaxy/Games/Hollow Knight",
    "Program Files (x86)/GOG Galaxy/Games/Hollow Knight",
    "Steam/steamapps/common/Hollow Knight",
    "GOG Galaxy/Games/Hollow Knight",
)

_HOME = Path.home()

_STEAM_CANDIDATES: list[Path] = [
    _HOME / ".local" / "share" / "Steam",                                          # Standard
    _HOME / ".var" / "app" / "com.valvesoftware.Steam" / ".local" / "share" / "Steam",  # Flatpak
    _HOME / "snap" / "steam" / "common" / ".local" / "share" / "Steam",            # Snap
    _HOME / ".steam" / "steam",                                                     # Symlink fallback
    _HOME / "Library" / "Application Support" / "Steam",                           # macOS
]

_VDF_FILENAME = "libraryfolders.vdf"
_VDF_PATH_RE = re.compile(r'"path"\s+"([^"]+)"')


def default_saves_dir(system: str | None = None) -> Path:
    """Where the game keeps user<slot>.dat and mod GlobalSettings files on this OS."""
    system = (system or platform.system()).lower()
    if system in ("darwin", "mac", "macos"):
        return _HOME / "Library" / "Application Support" / "unity.Team Cherry.Hollow Knight"
    if system == "windows":
        profile = Path(os.environ.get("USERPROFILE") or _HOME)
        return profile / "AppData" / "LocalLow" / "Team Cherry" / "Hollow Knight"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else _HOME / ".config"
    return base / "unity3d" / "Team Cherry" / "Hollow Knight"


def mods_dir_for_game(game_dir: Path) -> Path | None:
    """Return ``<managed>/Mods`` for the first Managed suffix that exists under *game_dir*."""
    for suffix in MANAGED_SUFFIXES:
        managed = game_dir / suffix
        if managed.is_dir():
            return managed / "Mods"
    return None


# ---------------------------------------------------------------------------
# Steam libraries
# ---------------------------------------------------------------------------

def parse_vdf_libraries(vdf_path: Path) -> list[Path]:
    """
    Return every existing ``steamapps/common`` listed in a libraryfolders.vdf.

    The file holds lines like::

        "path"    "/home/deck/.local/share/Steam"
    """
    try:
        text = vdf_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    libraries: list[Path] = []
    for match in _VDF_PATH_RE.finditer(text):
        common = Path(match.group(1).replace("\\\\", "\\")) / "steamapps" / "common"
        if common.is_dir():
            libraries.append(common)
    return libraries


def find_steam_libraries(steam_roots: list[Path] | None = None) -> list[Path]:
    """Deduplicated steamapps/common directories from all known Steam installs."""
    seen: set[Path] = set()
    libraries: list[Path] = []
    for steam_root in steam_roots if steam_roots is not None else _STEAM_CANDIDATES:
        vdf_path = steam_root / "steamapps" / _VDF_FILENAME
        if not vdf_path.is_file():
            continue
        for common in parse_vdf_libraries(vdf_path):
            resolved = common.resolve()
            if resolved not in seen:
                seen.add(resolved)
                libraries.append(common)
    return libraries


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------

class StaticModsRoot:
    """Always answers with the given mods root."""

    def __init__(self, path: Path | str):
        self._path = Path(path)

    def resolve(self) -> Path | None:
        return self._path


class GameDirModsRoot:
    """Mods root under a known game folder."""

    def __init__(self, game_dir: Path | str):
        self._game_dir = Path(game_dir)

    def resolve(self) -> Path | None:
        return mods_dir_for_game(self._game_dir)


class SteamModsRoot:
    """Look for Hollow Knight in every Steam library, then in the usual static locations."""

    def __init__(self, steam_roots: list[Path] | None = None,
                 search_bases: list[Path] | None = None):
        self._steam_roots = steam_roots
        self._search_bases = search_bases

    def _bases(self) -> list[Path]:
        if self._search_bases is not None:
            return self._search_bases
        bases = [_HOME / ".local" / "share", _HOME]
        bases.extend(Path(f"{letter}:/") for letter in "CDEFGH")
        return bases

    def resolve(self) -> Path | None:
        for common in find_steam_libraries(self._steam_roots):
            mods = mods_dir_for_game(common / GAME_FOLDER_NAME)
            if mods is not None:
                app_log(f"Found {GAME_FOLDER_NAME} in Steam library {common}")
                return mods
        for base in self._bases():
            for rel in STATIC_GAME_PATHS:
                game_dir = base / rel
                if game_dir.is_dir():
                    mods = mods_dir_for_game(game_dir)
                    if mods is not None:
                        app_log(f"Found {GAME_FOLDER_NAME} at {game_dir}")
                        return mods
        return None


# ---------------------------------------------------------------------------
# Prompters
# ---------------------------------------------------------------------------

class StaticPrompter:
    """Headless prompter: returns a fixed answer (None = the user cancelled)."""

    def __init__(self, answer: Path | str | None = None):
        self._answer = Path(answer) if answer else None

    def prompt(self, title: str, filters: list[str] | None = None) -> Path | None:
        return self._answer


class PathPrompter:
    """Asks on stdin; used by the CLI."""

    def prompt(self, title: str, filters: list[str] | None = None) -> Path | None:
        try:
            raw = input(f"{title}: ").strip()
        except EOFError:
            return None
        return Path(raw).expanduser() if raw else None


def ensure_mods_root(store: SettingsStore, resolver=None, prompter=None) -> Path:
    """
    Make sure Settings has a usable mods root and that the folder exists.

    An already configured path is kept. Otherwise the resolver is tried,
    then the prompter (which is asked for the game folder). The chosen path
    is created if needed and persisted.
    """
    current = store.read(lambda s: s.mods_path)
    mods: Path | None = Path(current) if current else None

    if mods is None and resolver is not None:
        mods = resolver.resolve()
    if mods is None and prompter is not None:
        app_log_warning("Selecting game path manually.")
        game_dir = prompter.prompt("Select the folder that contains the Hollow Knight executable")
        if game_dir is not None:
            mods = mods_dir_for_game(game_dir)
            if mods is None:
                app_log_warning(f"No managed path found under {game_dir}")
    if mods is None:
        raise FilesystemError("Could not locate the Hollow Knight mods folder")

    if not mods.is_dir():
        try:
            mods.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Error creating mods folder: {exc.strerror or exc}",
                                  path=mods) from exc
        app_log(f"Successfully created mods directory {mods}")

    if str(mods) != current:
        def _set(s) -> None:
            s.mods_path = str(mods)

        store.update(_set)
        app_log(f"Selected mod path as: {mods}")
    return mods
