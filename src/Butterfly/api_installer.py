"""
api_installer.py
Install and toggle the Modding API (the patched Assembly-CSharp.dll and its
companion files) in the game's Managed folder, which is the parent of the
mods root.

Toggle states::

    Assembly-CSharp.dll.vanilla present, .modded absent  → API active
    Assembly-CSharp.dll.modded present, .vanilla absent  → API inactive
    neither present                                      → API never installed
    both present                                         → inconsistent, refuse
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable

from Butterfly.app_log import app_log, app_log_warning
from Butterfly.archive_installer import extract_archive
from Butterfly.config_paths import get_temp_dir
from Butterfly.errors import FilesystemError, IntegrityError, NetworkError
from Butterfly.lifecycle import file_sha256
from ModLinks.mod_download import ModDownloader
from ModLinks.mod_links_api import ModLinksAPI

ASSEMBLY = "Assembly-CSharp.dll"
VANILLA_BACKUP = ASSEMBLY + ".vanilla"
MODDED_BACKUP = ASSEMBLY + ".modded"


class ApiInstaller:
    """
    Parameters
    ----------
    mods_root : Callable[[], Path]
        Returns the validated mods root (usually ModLifecycleEngine.mods_root).
    api : ModLinksAPI
        Source of the ApiLinks manifest.
    downloader : ModDownloader
    temp_dir : Path | None
        Scratch folder for the unpacked release; defaults to the config Temp dir.
    verify_hashes : bool
        Check the downloaded zip against the published SHA-256.
    system : str | None
        Platform override ('Linux', 'Darwin', 'Windows') for tests.
    """

    def __init__(self, mods_root: Callable[[], Path], api: ModLinksAPI,
                 downloader: ModDownloader, temp_dir: Path | None = None,
                 verify_hashes: bool = True, system: str | None = None):
        self._mods_root = mods_root
        self._api = api
        self._downloader = downloader
        self._temp_dir = temp_dir
        self._verify = verify_hashes
        self._system = system

    def managed_dir(self) -> Path:
        return self._mods_root().parent

    def is_api_installed(self) -> bool:
        managed = self.managed_dir()
        return (managed / VANILLA_BACKUP).exists() and not (managed / MODDED_BACKUP).exists()

    # -- toggle -------------------------------------------------------------

    def _rename(self, src: Path, dst: Path) -> None:
        try:
            src.replace(dst)
        except OSError as exc:
            raise FilesystemError(f"Failed to rename {src.name} to {dst.name}: "
                                  f"{exc.strerror or exc}", path=src) from exc

    def toggle_api(self) -> bool:
        """Switch between the vanilla and modded assembly. Returns True if the API is now active."""
        managed = self.managed_dir()
        assembly = managed / ASSEMBLY
        vanilla = managed / VANILLA_BACKUP
        modded = managed / MODDED_BACKUP

        if vanilla.exists() and modded.exists():
            raise FilesystemError("Both vanilla and modded assembly backups exist", path=managed)

        if vanilla.exists():
            self._rename(assembly, modded)
            self._rename(vanilla, assembly)
            app_log("Successfully replaced modded Assembly-CSharp with vanilla assembly.")
            return False

        if modded.exists():
            self._rename(assembly, vanilla)
            self._rename(modded, assembly)
            app_log("Successfully replaced vanilla Assembly-CSharp with modded assembly.")
            return True

        app_log_warning("Neither the modded or vanilla assembly backups exists, downloading API.")
        self.install_api()
        return True

    # -- install ------------------------------------------------------------

    def install_api(self) -> list[str]:
        """
        Download the platform release and move each listed file into the
        Managed folder when it is missing or differs. The original
        Assembly-CSharp.dll is kept as the .vanilla backup. Returns the file
        names that were replaced or added.
        """
        managed = self.managed_dir()
        manifest = self._api.fetch_api_links()
        link = manifest.link_for_platform(self._system)
        if not link.link:
            raise NetworkError("No Modding API download for this platform",
                               url=self._api.api_links_url)

        temp_dir = self._temp_dir or get_temp_dir()
        try:
            temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Failed to create Temp folder: {exc.strerror or exc}",
                                  path=temp_dir) from exc

        changed: list[str] = []
        try:
            archive = temp_dir / "ModdingApi.zip"
            self._downloader.download_to(link.link, archive)
            if self._verify and link.sha256:
                actual = file_sha256(archive)
                if actual.lower() != link.sha256.lower():
                    raise IntegrityError(
                        f"SHA-256 mismatch (expected {link.sha256.lower()}, got {actual})",
                        url=link.link)
            extract_archive(archive, temp_dir)
            app_log("Successfully unzipped API to Temp folder.")

            for name in manifest.files:
                src = temp_dir / name
                dst = managed / name
                if not src.is_file():
                    app_log_warning(f"API release is missing listed file {name!r}")
                    continue
                if not dst.exists():
                    self._rename(src, dst)
                    app_log(f"Successfully moved temp file for {name!r} to Managed folder.")
                    changed.append(name)
                elif file_sha256(src) != file_sha256(dst):
                    if name == ASSEMBLY:
                        self._rename(dst, managed / VANILLA_BACKUP)
                        app_log("Successfully backed up vanilla Assembly-CSharp.")
                    self._rename(src, dst)
                    app_log(f"Successfully replaced old local file for {name!r} with new API file.")
                    changed.append(name)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
        app_log(f"Modding API {manifest.version or ''} installed ({len(changed)} file(s) updated)")
        return changed
