"""
lifecycle.py
Install, enable, disable, uninstall and update-check mods, and reconcile the
local catalog with the remote one.

Per-mod states::

    NotPresent ──install──▶ Enabled ◀──enable/disable──▶ Disabled
         ▲                     │                            │
         └──────uninstall──────┴────────────────────────────┘

Disk is the source of truth for installed/enabled; the catalog records in
the SettingsStore are re-synchronised from disk after every operation.

Installs run on the shared worker pool and report progress through a
per-request InstallHandle, so several installs can be in flight without
sharing one progress value.
"""

from __future__ import annotations

import copy
import hashlib
import shutil
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from Butterfly.app_log import app_log, app_log_warning
from Butterfly.archive_installer import archive_suffix, install_file
from Butterfly.errors import (
    FilesystemError,
    IntegrityError,
    NotFoundError,
)
from Butterfly.mod_state import (
    disabled_mod_path,
    disabled_root,
    installed_folder,
    is_enabled,
    is_installed,
    mod_path,
    scan_mod_folders,
    validate_mod_name,
)
from Butterfly.options import EngineOptions
from Butterfly.settings import Settings
from Butterfly.state_store import SettingsStore
from ModLinks.mod_download import ModDownloader
from ModLinks.mod_links import LocalModRecord, ModLink, ModManifestEntry

MANUAL_VERSION = "Unknown"
MANUAL_DESCRIPTION = "No description available."

_README_SUFFIXES = frozenset({".txt", ".md"})


def file_sha256(path: Path) -> str:
    """Hex SHA-256 of a file, read in 1 MB blocks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def download_file_name(url: str, fallback: str) -> str:
    """Last path segment of *url* (percent-decoded), or *fallback*."""
    name = PurePosixPath(unquote(urlparse(url).path)).name
    if name in ("", ".", "..") or "\\" in name:
        return fallback
    return name


# ---------------------------------------------------------------------------
# Progress handle
# ---------------------------------------------------------------------------

class InstallHandle:
    """
    Progress and outcome of one install request.

    ``progress`` is 0..100; ``result()`` blocks until the install finishes
    and returns the updated record or raises the error that stopped it.
    """

    def __init__(self, mod_name: str):
        self.request_id = uuid.uuid4().hex
        self.mod_name = mod_name
        self._progress = 0
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._future: Future = Future()

    @property
    def progress(self) -> int:
        with self._lock:
            return self._progress

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    def cancel(self) -> None:
        """Ask the download to stop before its next chunk."""
        self._cancel.set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> LocalModRecord:
        return self._future.result(timeout)

    def add_done_callback(self, fn) -> None:
        self._future.add_done_callback(lambda _f: fn(self))

    # -- engine side --------------------------------------------------------

    def _set_progress(self, pct: int) -> None:
        with self._lock:
            self._progress = max(0, min(100, pct))

    def _bind(self, future: Future) -> None:
        self._future = future

    def _finish(self, record: LocalModRecord) -> None:
        self._set_progress(100)
        self._future.set_result(record)


@dataclass
class ReconcileResult:
    catalog: list[LocalModRecord] = field(default_factory=list)
    new_mods: list[str] = field(default_factory=list)
    outdated_mods: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ModLifecycleEngine:
    """
    Parameters
    ----------
    store : SettingsStore
        Owner of Settings; every record change goes through store.update().
    pool : ThreadPoolExecutor
        Worker pool that runs downloads.
    downloader : ModDownloader | None
        Defaults to one built from *options*.
    options : EngineOptions | None
    """

    def __init__(self, store: SettingsStore, pool: ThreadPoolExecutor,
                 downloader: ModDownloader | None = None,
                 options: EngineOptions | None = None):
        self._store = store
        self._pool = pool
        self._options = options or EngineOptions()
        self._downloader = downloader or ModDownloader(
            timeout=self._options.download_timeout,
            chunk_size=self._options.chunk_size,
        )
        self._fs_lock = threading.RLock()
        self._in_flight: dict[str, InstallHandle] = {}
        self._last_handle: InstallHandle | None = None

    @property
    def store(self) -> SettingsStore:
        return self._store

    @property
    def options(self) -> EngineOptions:
        return self._options

    # -- helpers ------------------------------------------------------------

    def mods_root(self) -> Path:
        """The configured mods folder. Fails fast if it is unset or missing."""
        raw = self._store.read(lambda s: s.mods_path)
        if not raw:
            raise FilesystemError("Mods folder is not configured")
        root = Path(raw)
        if not root.is_dir():
            raise FilesystemError("Mods folder does not exist", path=root)
        return root

    def _sync_record(self, name: str, root: Path, create: LocalModRecord | None = None,
                     **fields) -> LocalModRecord | None:
        """
        Re-read disk state for *name* and write it (plus *fields*) into its
        record. When no record exists, *create* is inserted if given.
        """
        installed = is_installed(root, name)
        enabled = is_enabled(root, name)

        def _apply(s: Settings) -> LocalModRecord | None:
            record = s.find_record(name)
            if record is None:
                if create is None:
                    return None
                record = create
                s.mod_links.append(record)
            for key, value in fields.items():
                setattr(record, key, value)
            record.installed = installed
            record.enabled = enabled
            return copy.deepcopy(record)

        return self._store.update(_apply)

    @staticmethod
    def _move(src: Path, dst: Path, name: str) -> None:
        try:
            shutil.move(str(src), str(dst))
        except OSError as exc:
            raise FilesystemError(f"Failed to move mod folder to {dst}: {exc.strerror or exc}",
                                  mod_name=name, path=src) from exc

    @staticmethod
    def _remove_tree(path: Path, name: str) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as exc:
            raise FilesystemError(f"Failed to remove mod directory: {exc.strerror or exc}",
                                  mod_name=name, path=path) from exc

    @staticmethod
    def _remove_empty_dir(path: Path) -> None:
        """Remove *path* if it is an empty folder; failures are only logged."""
        try:
            if path.is_dir() and not any(path.iterdir()):
                path.rmdir()
        except OSError as exc:
            app_log_warning(f"Could not remove empty mod folder {path}: {exc.strerror or exc}")

    # -- install ------------------------------------------------------------

    def start_install(self, name: str, version: str, link: str,
                      sha256: str = "") -> InstallHandle:
        """
        Begin installing *name* and return its progress handle.

        Already enabled → only the record is refreshed. Present but disabled
        → enabled in place, no download. Otherwise the archive is downloaded
        and unpacked on the worker pool. A second request for a mod that is
        still downloading returns the handle of the first.
        """
        validate_mod_name(name)
        root = self.mods_root()
        with self._fs_lock:
            running = self._in_flight.get(name)
            if running is not None and not running.done():
                return running

            handle = InstallHandle(name)
            self._last_handle = handle
            new_record = LocalModRecord(name=name, version=version,
                                        link=ModLink(link=link, sha256=sha256))

            if is_enabled(root, name):
                app_log(f"Mod {name!r} is already installed and enabled")
                handle._finish(self._sync_record(name, root, create=new_record))
                return handle

            if is_installed(root, name):
                app_log(f"Mod {name!r} is installed but disabled, enabling it instead")
                self.enable(name)
                handle._finish(self._sync_record(name, root, create=new_record))
                return handle

            self._in_flight[name] = handle
            app_log(f"Installing mod {name!r} {version} from {link}")
            handle._bind(self._pool.submit(self._install_worker, handle, root, new_record))
        return handle

    def install(self, name: str, version: str, link: str, sha256: str = "") -> LocalModRecord:
        """Install and block until the download and unpack have finished."""
        return self.start_install(name, version, link, sha256).result()

    def _install_worker(self, handle: InstallHandle, root: Path,
                        new_record: LocalModRecord) -> LocalModRecord:
        name = new_record.name
        url = new_record.link.link
        target = mod_path(root, name)
        created = not target.exists()
        try:
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise FilesystemError(f"Failed to create mod folder: {exc.strerror or exc}",
                                      mod_name=name, path=target) from exc

            file_name = download_file_name(url, f"{name}.dll")
            suffix = archive_suffix(file_name)
            download_path = target / (f"temp{suffix}" if suffix else file_name)

            try:
                self._download_verified(handle, url, download_path, new_record.link.sha256)
            except Exception:
                if created:
                    self._remove_empty_dir(target)
                raise

            install_file(download_path, target)
            record = self._sync_record(
                name, root, create=new_record,
                version=new_record.version, link=new_record.link,
            )
            handle._set_progress(100)
            app_log(f"Successfully installed {name!r} {new_record.version}")
            return record
        finally:
            with self._fs_lock:
                if self._in_flight.get(name) is handle:
                    del self._in_flight[name]

    def _download_verified(self, handle: InstallHandle, url: str, dest: Path,
                           expected: str) -> None:
        """Download *url* to *dest*; check SHA-256 when enabled, retrying once."""
        check = self._options.verify_hashes and bool(expected.strip())
        attempts = 2 if check and self._options.hash_retry else 1
        for attempt in range(1, attempts + 1):
            handle._set_progress(0)
            self._downloader.download_to(url, dest, progress_cb=handle._set_progress,
                                         cancel=handle.cancel_event)
            if not check:
                return
            actual = file_sha256(dest)
            if actual.lower() == expected.strip().lower():
                app_log(f"Downloaded hash of {handle.mod_name!r} matches the catalog")
                return
            dest.unlink(missing_ok=True)
            if attempt < attempts:
                app_log_warning(f"SHA-256 mismatch for {handle.mod_name!r}, re-downloading")
        raise IntegrityError(
            f"SHA-256 mismatch (expected {expected.lower()}, got {actual})",
            mod_name=handle.mod_name, url=url)

    def fetch_download_progress(self) -> int:
        """Progress of the most recently started install (0 when none)."""
        handle = self._last_handle
        return handle.progress if handle is not None else 0

    # -- enable / disable / uninstall ---------------------------------------

    def enable(self, name: str) -> None:
        """Move Disabled/<name> back into the mods folder."""
        validate_mod_name(name)
        root = self.mods_root()
        with self._fs_lock:
            src = disabled_mod_path(root, name)
            dst = mod_path(root, name)
            if src.exists():
                if dst.exists():
                    raise FilesystemError("Mod exists both enabled and disabled",
                                          mod_name=name, path=dst)
                self._move(src, dst, name)
                app_log(f"Successfully moved mod {name} out of Disabled folder.")
            else:
                app_log_warning(f"Path {src} does not exist.")
            self._sync_record(name, root)

    def disable(self, name: str) -> None:
        """Move <name> into the Disabled folder, creating it if needed."""
        validate_mod_name(name)
        root = self.mods_root()
        with self._fs_lock:
            try:
                disabled_root(root).mkdir(exist_ok=True)
            except OSError as exc:
                raise FilesystemError(f"Failed to create Disabled folder: {exc.strerror or exc}",
                                      mod_name=name, path=disabled_root(root)) from exc
            src = mod_path(root, name)
            dst = disabled_mod_path(root, name)
            if src.exists():
                if dst.exists():
                    raise FilesystemError("Mod exists both enabled and disabled",
                                          mod_name=name, path=dst)
                self._move(src, dst, name)
                app_log(f"Successfully moved mod {name} to Disabled folder.")
            else:
                app_log_warning(f"Path {src} does not exist.")
            self._sync_record(name, root)

    def uninstall(self, name: str) -> None:
        """Delete the mod folder(s); the catalog record is kept, zeroed."""
        validate_mod_name(name)
        root = self.mods_root()
        with self._fs_lock:
            removed = False
            for path in (mod_path(root, name), disabled_mod_path(root, name)):
                if path.exists():
                    self._remove_tree(path, name)
                    removed = True
            if removed:
                app_log(f"Successfully removed all contents for {name}")
            else:
                app_log_warning(f"Path {mod_path(root, name)} does not exist.")
            self._sync_record(name, root)

    # -- catalog ------------------------------------------------------------

    def check_for_update(self, name: str, remote_version: str) -> bool:
        """True only if a record exists and its version string differs."""
        record = self._store.read(lambda s: s.find_record(name))
        if record is None:
            return False
        return record.version != remote_version

    def reconcile_with_remote_catalog(self, remote: list[ModManifestEntry]) -> ReconcileResult:
        """
        Merge freshly fetched entries with disk state and swap the catalog in
        one step. Installed records unknown to the remote catalog (manual
        installs) are kept after the remote entries.
        """
        root = self.mods_root()
        with self._fs_lock:
            def _merge(s: Settings) -> ReconcileResult:
                previous = {r.name: r for r in s.mod_links}
                result = ReconcileResult()
                remote_names = set()
                for entry in remote:
                    remote_names.add(entry.name)
                    installed = is_installed(root, entry.name)
                    result.catalog.append(entry.to_record(
                        installed=installed, enabled=is_enabled(root, entry.name)))
                    old = previous.get(entry.name)
                    if old is None:
                        result.new_mods.append(entry.name)
                    elif installed and old.version != entry.version:
                        result.outdated_mods.append(entry.name)
                for record in s.mod_links:
                    if record.name not in remote_names and is_installed(root, record.name):
                        result.catalog.append(record.with_state(
                            installed=True, enabled=is_enabled(root, record.name)))
                s.mod_links = result.catalog
                return copy.deepcopy(result)

            result = self._store.update(_merge)
        app_log(f"Catalog reconciled: {len(result.catalog)} mods, "
                f"{len(result.new_mods)} new, {len(result.outdated_mods)} outdated")
        return result

    def fetch_installed_mods(self) -> list[LocalModRecord]:
        root = self.mods_root()
        records = self._store.snapshot().mod_links
        return [r.with_state(True, is_enabled(root, r.name))
                for r in records if is_installed(root, r.name)]

    def fetch_enabled_mods(self) -> list[LocalModRecord]:
        root = self.mods_root()
        records = self._store.snapshot().mod_links
        return [r.with_state(True, True) for r in records if is_enabled(root, r.name)]

    # -- manual installs ----------------------------------------------------

    def manually_install(self, source: Path) -> str:
        """
        Install a local .dll or archive as <root>/<stem>/. Returns the mod
        name when a new record was added, "" when one already existed.
        """
        root = self.mods_root()
        if not source.is_file():
            raise FilesystemError("Selected file does not exist", path=source)
        suffix = archive_suffix(source.name)
        stem = source.name[: -len(suffix)] if suffix else source.stem
        if not stem:
            raise FilesystemError("Cannot derive a mod name from the file", path=source)
        validate_mod_name(stem)

        with self._fs_lock:
            target = mod_path(root, stem)
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise FilesystemError(f"Failed to create mod folder: {exc.strerror or exc}",
                                      mod_name=stem, path=target) from exc
            install_file(source, target, remove_source=False)

            existed = self._store.read(lambda s: s.find_record(stem) is not None)
            self._sync_record(stem, root, create=LocalModRecord(
                name=stem, description=MANUAL_DESCRIPTION, version=MANUAL_VERSION,
                tags=[]))
        app_log(f"Manually installed {stem!r} from {source}")
        return "" if existed else stem

    def fetch_manually_installed_mods(self) -> list[tuple[str, bool]]:
        """Mod folders on disk with no catalog record that contain a .dll."""
        root = self.mods_root()
        known = self._store.read(lambda s: {r.name for r in s.mod_links})
        found: list[tuple[str, bool]] = []
        for name, enabled, folder in scan_mod_folders(root):
            if name in known:
                continue
            try:
                has_dll = any(p.suffix.lower() == ".dll" for p in folder.iterdir() if p.is_file())
            except OSError:
                has_dll = False
            if has_dll:
                found.append((name, enabled))
        return found

    def find_mod_readme(self, name: str) -> Path | None:
        """Return the mod's README (.txt/.md, any case), or None if it has none."""
        validate_mod_name(name)
        root = self.mods_root()
        folder = installed_folder(root, name)
        if folder is None:
            raise NotFoundError("The mod is not installed", mod_name=name)
        for p in sorted(folder.iterdir()):
            if p.is_file() and p.stem.lower() == "readme" and p.suffix.lower() in _README_SUFFIXES:
                return p
        return None

    def reset_mod_settings(self, name: str, saves_dir: Path) -> list[Path]:
        """Delete <saves_dir>/<dll stem>.GlobalSettings.json for each of the mod's DLLs."""
        validate_mod_name(name)
        root = self.mods_root()
        folder = installed_folder(root, name)
        if folder is None:
            raise NotFoundError("The mod is not installed", mod_name=name)
        deleted: list[Path] = []
        for dll in sorted(folder.glob("*.dll")):
            settings_file = saves_dir / f"{dll.stem}.GlobalSettings.json"
            if not settings_file.is_file():
                continue
            try:
                settings_file.unlink()
            except OSError as exc:
                raise FilesystemError(f"Failed to delete global settings: {exc.strerror or exc}",
                                      mod_name=name, path=settings_file) from exc
            app_log(f"Successfully deleted global settings for {name}")
            deleted.append(settings_file)
        return deleted

    def import_save(self, source: Path, slot: int, saves_dir: Path) -> Path:
        """Copy a ``.dat`` save file into *saves_dir* as ``user<slot>.dat``."""
        if slot < 1:
            raise FilesystemError(f"Invalid save slot {slot}", path=source)
        if not source.is_file():
            raise FilesystemError("Save file does not exist", path=source)
        dest = saves_dir / f"user{slot}.dat"
        try:
            saves_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError as exc:
            raise FilesystemError(f"Failed to copy save file to slot {slot}: "
                                  f"{exc.strerror or exc}", path=dest) from exc
        app_log(f"Successfully copied save file to saves folder for slot {slot}.")
        return dest

    # -- profiles -----------------------------------------------------------

    def apply_profile(self, name: str) -> list[str]:
        """
        Enable every installed mod the profile lists and disable every other
        installed mod, then mark the profile active. Returns the names that
        ended up enabled.
        """
        profile = self._store.read(lambda s: s.find_profile(name))
        if profile is None:
            raise NotFoundError(f"No profile named {name!r}")
        root = self.mods_root()
        wanted = set(profile.mods)
        enabled: list[str] = []
        with self._fs_lock:
            for mod_name, is_on, _folder in scan_mod_folders(root):
                if mod_name in wanted and not is_on:
                    self.enable(mod_name)
                elif mod_name not in wanted and is_on:
                    self.disable(mod_name)
                if mod_name in wanted:
                    enabled.append(mod_name)

            def _activate(s: Settings) -> None:
                s.current_profile = name

            self._store.update(_activate)
        missing = wanted - set(enabled)
        if missing:
            app_log_warning(f"Profile {name!r} lists mods that are not installed: "
                            f"{', '.join(sorted(missing))}")
        return enabled
