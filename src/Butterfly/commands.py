"""
commands.py
The command surface the UI / CLI talks to, and the AppState that owns every
long-lived object (store, worker pool, HTTP clients, engine).

Each command catches ButterflyError, logs it, hands the message to the
optional ``notify`` callback and returns a neutral value, so a failing
command never takes the process down.

Usage
-----
    from Butterfly.commands import AppState, Commands

    with AppState() as state:
        cmds = Commands(state, notify=print)
        cmds.install_mod("QoL", "1.2.0", "", "https://example/qol.zip")
"""

from __future__ import annotations

import functools
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable

import requests

from Butterfly.api_installer import ApiInstaller
from Butterfly.app_log import app_log, app_log_error, app_log_warning
from Butterfly.config_paths import get_settings_path
from Butterfly.errors import ButterflyError
from Butterfly.game_locator import default_saves_dir
from Butterfly.lifecycle import InstallHandle, ModLifecycleEngine, ReconcileResult
from Butterfly.options import EngineOptions
from Butterfly import profiles as profile_ops
from Butterfly.settings import Profile, Settings
from Butterfly.state_store import SettingsStore
from ModLinks.mod_download import ModDownloader
from ModLinks.mod_links import LocalModRecord, ModManifestEntry
from ModLinks.mod_links_api import ModLinksAPI


class AppState:
    """
    Owns the settings store, the worker pool and the HTTP clients, and wires
    them into the lifecycle engine. Close it (or use it as a context manager)
    to shut the pool down.
    """

    def __init__(self, settings_path: Path | None = None,
                 options: EngineOptions | None = None,
                 session: requests.Session | None = None):
        self.options = options or EngineOptions.from_env()
        self.store = SettingsStore(settings_path or get_settings_path())
        self.pool = ThreadPoolExecutor(max_workers=self.options.max_workers,
                                       thread_name_prefix="butterfly")
        self.downloader = ModDownloader(session=session,
                                        timeout=self.options.download_timeout,
                                        chunk_size=self.options.chunk_size)
        self.catalog_api = ModLinksAPI(self.options.mod_links_url,
                                       self.options.api_links_url,
                                       timeout=self.options.catalog_timeout,
                                       session=session)
        self.engine = ModLifecycleEngine(self.store, self.pool,
                                         downloader=self.downloader,
                                         options=self.options)
        self.api_installer = ApiInstaller(self.engine.mods_root, self.catalog_api,
                                          self.downloader,
                                          verify_hashes=self.options.verify_hashes)

    def close(self) -> None:
        self.pool.shutdown(wait=True)

    def __enter__(self) -> AppState:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _command(default: Callable[[], object] = lambda: None):
    """Wrap a command so ButterflyError becomes a log entry, a notification and *default()*."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self: Commands, *args, **kwargs):
            self.last_error = None
            try:
                return fn(self, *args, **kwargs)
            except ButterflyError as exc:
                self.last_error = exc
                app_log_error(f"{fn.__name__} failed: {exc}")
                if self.notify is not None:
                    self.notify(str(exc))
                return default()
        return wrapper
    return decorator


class Commands:
    """
    Parameters
    ----------
    state : AppState
    notify : Callable[[str], None] | None
        Receives a readable message whenever a command fails.
    """

    def __init__(self, state: AppState, notify: Callable[[str], None] | None = None):
        self.state = state
        self.notify = notify
        self.last_error: ButterflyError | None = None

    @property
    def _engine(self) -> ModLifecycleEngine:
        return self.state.engine

    @property
    def _store(self) -> SettingsStore:
        return self.state.store

    # -- mods ---------------------------------------------------------------

    @_command(lambda: False)
    def install_mod(self, name: str, version: str, sha256: str, link: str) -> bool:
        """Install and wait for completion. True on success."""
        self._engine.install(name, version, link, sha256)
        return True

    @_command()
    def start_install(self, name: str, version: str, sha256: str,
                      link: str) -> InstallHandle | None:
        """Begin an install and return its handle without waiting."""
        return self._engine.start_install(name, version, link, sha256)

    @_command(lambda: False)
    def enable_mod(self, name: str) -> bool:
        self._engine.enable(name)
        return True

    @_command(lambda: False)
    def disable_mod(self, name: str) -> bool:
        self._engine.disable(name)
        return True

    @_command(lambda: False)
    def uninstall_mod(self, name: str) -> bool:
        self._engine.uninstall(name)
        return True

    def check_for_update(self, name: str, version: str) -> bool:
        return self._engine.check_for_update(name, version)

    @_command(list)
    def fetch_installed_mods(self) -> list[LocalModRecord]:
        return self._engine.fetch_installed_mods()

    @_command(list)
    def fetch_enabled_mods(self) -> list[LocalModRecord]:
        return self._engine.fetch_enabled_mods()

    def fetch_download_progress(self) -> int:
        return self._engine.fetch_download_progress()

    def fetch_mod_list(self) -> list[LocalModRecord]:
        """The stored catalog, as last reconciled."""
        return self._store.snapshot().mod_links

    @_command(lambda: "")
    def manually_install_mod(self, path: Path | str) -> str:
        return self._engine.manually_install(Path(path))

    @_command(list)
    def fetch_manually_installed_mods(self) -> list[tuple[str, bool]]:
        return self._engine.fetch_manually_installed_mods()

    @_command()
    def find_mod_readme(self, name: str) -> Path | None:
        return self._engine.find_mod_readme(name)

    @_command(list)
    def reset_mod_settings(self, name: str, saves_dir: Path | str) -> list[Path]:
        return self._engine.reset_mod_settings(name, Path(saves_dir))

    @_command()
    def import_save(self, path: Path | str, slot: int,
                    saves_dir: Path | str | None = None) -> Path | None:
        """Copy a save file into slot *slot*; defaults to this OS's saves folder."""
        target_dir = Path(saves_dir) if saves_dir else default_saves_dir()
        return self._engine.import_save(Path(path), slot, target_dir)

    # -- catalog ------------------------------------------------------------

    @_command(ReconcileResult)
    def reconcile_catalog(self, remote: list[ModManifestEntry]) -> ReconcileResult:
        return self._engine.reconcile_with_remote_catalog(remote)

    @_command(ReconcileResult)
    def refresh_catalog(self) -> ReconcileResult:
        """Fetch ModLinks.xml and reconcile the local catalog with it."""
        entries = self.state.catalog_api.fetch_mod_links()
        return self._engine.reconcile_with_remote_catalog(entries)

    # -- Modding API --------------------------------------------------------

    @_command(lambda: False)
    def check_api_installed(self) -> bool:
        return self.state.api_installer.is_api_installed()

    @_command(lambda: False)
    def toggle_api(self) -> bool:
        return self.state.api_installer.toggle_api()

    # -- profiles -----------------------------------------------------------

    @_command(lambda: False)
    def create_profile(self, name: str, mod_names: list[str]) -> bool:
        self._store.update(lambda s: profile_ops.create_profile(s, name, mod_names))
        app_log(f"Created profile {name!r}")
        return True

    @_command(lambda: False)
    def delete_profile(self, name: str) -> bool:
        self._store.update(lambda s: profile_ops.delete_profile(s, name))
        app_log(f"Deleted profile {name!r}")
        return True

    @_command(lambda: False)
    def set_profile(self, name: str) -> bool:
        self._store.update(lambda s: profile_ops.set_current_profile(s, name))
        return True

    @_command(list)
    def activate_profile(self, name: str) -> list[str]:
        """Enable exactly the profile's mods on disk and make it current."""
        return self._engine.apply_profile(name)

    def fetch_profiles(self) -> tuple[list[Profile], str]:
        snap = self._store.snapshot()
        return snap.profiles, snap.current_profile

    @_command(lambda: 0)
    def export_profiles(self, names: list[str], dest: Path | str) -> int:
        return self._store.read(lambda s: profile_ops.export_profiles(s, names, Path(dest)))

    @_command(list)
    def import_profiles(self, src: Path | str) -> list[str]:
        incoming = profile_ops.read_profiles_file(Path(src))
        imported = self._store.update(lambda s: profile_ops.import_profiles(s, incoming))
        app_log(f"Imported {len(imported)} profile(s) from {src}")
        return imported

    # -- settings -----------------------------------------------------------

    def fetch_current_profile(self) -> str:
        return self._store.read(lambda s: s.current_profile)

    def fetch_language(self) -> str:
        return self._store.read(lambda s: s.language)

    def fetch_mods_path(self) -> str:
        return self._store.read(lambda s: s.mods_path)

    @_command(lambda: False)
    def set_language(self, language: str) -> bool:
        self._set_field("language", language)
        return True

    @_command(lambda: False)
    def set_theme(self, theme: str) -> bool:
        self._set_field("theme", theme)
        return True

    @_command(lambda: False)
    def set_theme_path(self, path: str) -> bool:
        self._set_field("theme_path", path)
        return True

    @_command(lambda: False)
    def set_mods_path(self, path: str) -> bool:
        self._set_field("mods_path", path)
        return True

    def _set_field(self, field_name: str, value: str) -> None:
        def _apply(s: Settings) -> None:
            setattr(s, field_name, value)

        self._store.update(_apply)

    def fetch_theme_data(self) -> tuple[str, str, str]:
        """Return (theme, theme_path, css); css is empty when no readable stylesheet is set."""
        theme, theme_path = self._store.read(lambda s: (s.theme, s.theme_path))
        css = ""
        if theme_path:
            try:
                css = Path(theme_path).read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                app_log_warning(f"Could not read theme stylesheet {theme_path}: "
                                f"{exc.strerror or exc}")
        return theme, theme_path, css
