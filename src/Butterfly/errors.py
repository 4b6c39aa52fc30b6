"""
errors.py
Exception taxonomy shared by the engine, the downloader and settings I/O.

Every error carries the mod name and the offending path or URL when known,
so the command layer can show a readable message without extra context.
"""

from __future__ import annotations

from pathlib import Path


class ButterflyError(Exception):
    """Base class for all errors surfaced to the command layer."""

    def __init__(self, message: str, mod_name: str = "",
                 path: Path | str | None = None, url: str = ""):
        super().__init__(message)
        self.message = message
        self.mod_name = mod_name
        self.path = Path(path) if path else None
        self.url = url

    def __str__(self) -> str:
        parts = [self.message]
        if self.mod_name:
            parts.append(f"mod: {self.mod_name}")
        if self.path is not None:
            parts.append(f"path: {self.path}")
        if self.url:
            parts.append(f"url: {self.url}")
        return " | ".join(parts)


class NetworkError(ButterflyError):
    """Unreachable host, bad HTTP status, missing Content-Length or timeout."""


class DownloadCancelled(NetworkError):
    """Raised when a download is cancelled via the cancel event."""


class FilesystemError(ButterflyError):
    """Missing path, permission denied, or a failed move/copy/remove."""


class ExtractError(ButterflyError):
    """Corrupt, unreadable or unsupported archive."""


class IntegrityError(ButterflyError):
    """Downloaded file does not match the published SHA-256."""


class CorruptSettingsError(ButterflyError):
    """The settings file could not be decoded."""


class NotFoundError(ButterflyError):
    """A mod or profile name is not present in local state."""


class DuplicateNameError(ButterflyError):
    """A profile name is empty or already in use."""
