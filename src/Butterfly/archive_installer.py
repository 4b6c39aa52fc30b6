"""
archive_installer.py
Unpack a downloaded mod into its folder, or copy a bare file into it.

Supports .zip, .7z, and .tar.* formats. Anything else (typically a single
.dll) is copied under its own name. A failed extraction is NOT rolled back:
whatever was already written stays in the destination, and callers must
uninstall before retrying.
"""

from __future__ import annotations

import shutil
import tarfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath

import py7zr
from py7zr.exceptions import ArchiveError as SevenZipArchiveError, Bad7zFile

from Butterfly.app_log import app_log
from Butterfly.errors import ExtractError, FilesystemError

_TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")
ARCHIVE_SUFFIXES = (".zip", ".7z") + _TAR_SUFFIXES


def archive_suffix(name: str) -> str:
    """Return the recognised archive suffix of *name* (lowercase), or ''."""
    lower = name.lower()
    for suffix in sorted(ARCHIVE_SUFFIXES, key=len, reverse=True):
        if lower.endswith(suffix):
            return suffix
    return ""


def is_archive(name: str) -> bool:
    return bool(archive_suffix(name))


def _check_member(dest: Path, member: str, archive: Path) -> None:
    """Reject absolute paths and '..' segments (zip-slip)."""
    rel = PurePosixPath(member.replace("\\", "/"))
    if rel.is_absolute() or ".." in rel.parts:
        raise ExtractError(f"Archive entry escapes the mod folder: {member}", path=archive)
    target = (dest / rel).resolve()
    if target != dest.resolve() and dest.resolve() not in target.parents:
        raise ExtractError(f"Archive entry escapes the mod folder: {member}", path=archive)


def _extract_zip(archive: Path, dest: Path) -> int:
    with zipfile.ZipFile(archive, "r") as z:
        names = z.namelist()
        for name in names:
            _check_member(dest, name, archive)
        z.extractall(dest)
    return len(names)


def _extract_7z(archive: Path, dest: Path) -> int:
    with py7zr.SevenZipFile(archive, "r") as z:
        names = z.getnames()
        for name in names:
            _check_member(dest, name, archive)
        z.extractall(path=dest)
    return len(names)


def _extract_tar(archive: Path, dest: Path) -> int:
    with tarfile.open(archive, "r:*") as t:
        members = t.getmembers()
        for m in members:
            _check_member(dest, m.name, archive)
            if m.issym() or m.islnk():
                raise ExtractError(f"Archive contains a link: {m.name}", path=archive)
        t.extractall(dest)
    return len(members)


def extract_archive(archive: Path, dest: Path) -> int:
    """
    Extract every entry of *archive* into *dest*, preserving relative paths.
    Returns the number of entries. Raises ExtractError on corrupt, unreadable
    or unsupported archives.
    """
    suffix = archive_suffix(archive.name)
    try:
        dest.mkdir(parents=True, exist_ok=True)
        if suffix == ".zip":
            return _extract_zip(archive, dest)
        if suffix == ".7z":
            return _extract_7z(archive, dest)
        if suffix in _TAR_SUFFIXES:
            return _extract_tar(archive, dest)
    except ExtractError:
        raise
    except (zipfile.BadZipFile, Bad7zFile, tarfile.TarError,
            zlib.error, EOFError) as exc:
        raise ExtractError(f"Corrupt archive: {exc}", path=archive) from exc
    except (SevenZipArchiveError, NotImplementedError, RuntimeError) as exc:
        raise ExtractError(f"Unsupported archive contents: {exc}", path=archive) from exc
    except OSError as exc:
        raise ExtractError(f"Could not read archive: {exc.strerror or exc}",
                           path=archive) from exc
    raise ExtractError("Unsupported archive format (expected .zip, .7z, .tar.*)",
                       path=archive)


def install_file(source: Path, dest_dir: Path, remove_source: bool = True) -> list[Path]:
    """
    Install *source* into *dest_dir*.

    Archives are extracted and then (when *remove_source*) deleted; other
    files are copied in under their original name. Returns the top-level
    paths now present in *dest_dir* that came from *source*.
    """
    if not source.is_file():
        raise FilesystemError("Downloaded file is missing", path=source)

    if is_archive(source.name):
        before = set(dest_dir.iterdir()) if dest_dir.is_dir() else set()
        count = extract_archive(source, dest_dir)
        app_log(f"Successfully unpacked {count} entr{'y' if count == 1 else 'ies'} "
                f"from {source.name} into {dest_dir}")
        if remove_source:
            try:
                source.unlink()
            except OSError as exc:
                raise FilesystemError(f"Could not remove temporary archive: "
                                      f"{exc.strerror or exc}", path=source) from exc
        return sorted(p for p in dest_dir.iterdir() if p not in before and p != source)

    target = dest_dir / source.name
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        if source.resolve() != target.resolve():
            shutil.copy2(source, target)
    except OSError as exc:
        raise FilesystemError(f"Could not copy {source.name}: {exc.strerror or exc}",
                              path=target) from exc
    app_log(f"Copied {source.name} into {dest_dir}")
    return [target]
