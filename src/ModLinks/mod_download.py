"""
mod_download.py
Streaming downloader for mod archives and the Modding API zip.

Handles the full flow:
  1. Open the URL (Content-Length is required up front)
  2. Stream-download chunk by chunk, writing each chunk immediately
  3. Report cumulative progress as a whole percentage (0..100)

Usage
-----
    from ModLinks.mod_download import ModDownloader

    dl = ModDownloader()
    result = dl.download_to("https://example/qol.zip", Path("/games/hk/Mods/QoL/temp.zip"),
                            progress_cb=lambda pct: print(pct))
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

import requests

from Butterfly.app_log import app_log
from Butterfly.errors import DownloadCancelled, FilesystemError, NetworkError
from Butterfly.options import CHUNK_SIZE
from version import __version__

# Callback signature: (percent_complete)
ProgressCallback = Callable[[int], None]


@dataclass
class DownloadResult:
    """Result of a completed download."""
    file_path: Path
    bytes_downloaded: int
    total_bytes: int


def percent_complete(downloaded: int, total: int) -> int:
    """floor(min(downloaded, total) / total * 100); an empty body counts as complete."""
    if total <= 0:
        return 100
    return (min(downloaded, total) * 100) // total


class ModDownloader:
    """
    Streams HTTP resources to disk.

    Parameters
    ----------
    session : requests.Session | None
        Session used for requests; any object with a compatible ``get`` works.
    timeout : float
        Connect/read timeout in seconds for each request.
    chunk_size : int
        Bytes requested per chunk.
    """

    def __init__(self, session: requests.Session | None = None,
                 timeout: float = 60.0, chunk_size: int = CHUNK_SIZE):
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": f"Butterfly/{__version__}"})
        self._timeout = timeout
        self._chunk_size = chunk_size

    # -- Public API ---------------------------------------------------------

    def stream(
        self,
        url: str,
        cancel: threading.Event | None = None,
    ) -> Iterator[tuple[bytes, int]]:
        """
        Yield ``(chunk, total_size)`` pairs for *url*.

        Raises NetworkError if the connection fails, the server answers with
        an error status, or no Content-Length is reported. Raises
        DownloadCancelled if *cancel* is set between chunks.
        """
        try:
            resp = self._session.get(url, stream=True, timeout=self._timeout)
        except requests.Timeout as exc:
            raise NetworkError(f"Request timed out after {self._timeout}s", url=url) from exc
        except requests.RequestException as exc:
            raise NetworkError(f"Connection failed: {exc}", url=url) from exc

        with resp:
            try:
                resp.raise_for_status()
            except requests.HTTPError as exc:
                raise NetworkError(f"HTTP {resp.status_code} from server", url=url) from exc

            length = resp.headers.get("Content-Length")
            if length is None:
                raise NetworkError("Server did not report a content length", url=url)
            try:
                total = int(length)
            except ValueError as exc:
                raise NetworkError(f"Invalid Content-Length {length!r}", url=url) from exc

            try:
                for chunk in resp.iter_content(self._chunk_size):
                    if cancel is not None and cancel.is_set():
                        raise DownloadCancelled("Download cancelled", url=url)
                    if chunk:
                        yield chunk, total
            except requests.RequestException as exc:
                raise NetworkError(f"Connection lost mid-download: {exc}", url=url) from exc

    def download_to(
        self,
        url: str,
        dest: Path,
        progress_cb: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> DownloadResult:
        """
        Stream-download *url* into *dest*, reporting monotonically increasing
        percentages through *progress_cb*. The last report is always 100.

        A failed or cancelled download removes the partial file.
        """
        downloaded = 0
        total = 0
        last_pct = -1
        try:
            with open(dest, "wb") as fh:
                for chunk, total in self.stream(url, cancel):
                    fh.write(chunk)
                    downloaded += len(chunk)
                    pct = percent_complete(downloaded, total)
                    if progress_cb and pct > last_pct:
                        last_pct = pct
                        progress_cb(pct)
        except OSError as exc:
            dest.unlink(missing_ok=True)
            raise FilesystemError(f"Could not write download: {exc.strerror or exc}",
                                  path=dest, url=url) from exc
        except NetworkError:
            dest.unlink(missing_ok=True)
            raise

        if total and downloaded < total:
            dest.unlink(missing_ok=True)
            raise NetworkError(
                f"Download ended early ({downloaded} of {total} bytes)", url=url)

        if progress_cb and last_pct < 100:
            progress_cb(100)

        app_log(f"Downloaded {url} ({downloaded} bytes) → {dest}")
        return DownloadResult(file_path=dest, bytes_downloaded=downloaded, total_bytes=total)
