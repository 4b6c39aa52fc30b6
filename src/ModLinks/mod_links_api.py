"""
mod_links_api.py
Client for the published ModLinks.xml (mod catalog) and ApiLinks.xml
(Modding API release) documents.

Usage
-----
    from ModLinks.mod_links_api import ModLinksAPI

    api = ModLinksAPI()
    entries = api.fetch_mod_links()
    manifest = api.fetch_api_links()
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

import requests

from Butterfly.app_log import app_log
from Butterfly.errors import NetworkError
from Butterfly.options import API_LINKS_URL, MOD_LINKS_URL
from ModLinks.mod_links import ApiManifest, ModManifestEntry, parse_api_links, parse_mod_links
from version import __version__


class ModLinksAPI:
    """
    Synchronous fetcher for the two catalog documents.

    Parameters
    ----------
    mod_links_url / api_links_url : str
        Document locations; default to the hk-modding/modlinks repository.
    timeout : float
        Request timeout in seconds.
    session : requests.Session | None
        Injected session (tests pass a fake).
    """

    def __init__(self, mod_links_url: str = MOD_LINKS_URL,
                 api_links_url: str = API_LINKS_URL,
                 timeout: float = 30.0,
                 session: requests.Session | None = None):
        self.mod_links_url = mod_links_url
        self.api_links_url = api_links_url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": f"Butterfly/{__version__}",
            "Cache-Control": "no-cache",
        })

    # -- low-level ----------------------------------------------------------

    def _get_text(self, url: str) -> str:
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.Timeout as exc:
            raise NetworkError(f"Request timed out after {self._timeout}s", url=url) from exc
        except requests.RequestException as exc:
            raise NetworkError(f"Connection failed: {exc}", url=url) from exc

        app_log(f"GET {url} → {resp.status_code}")
        if not resp.ok:
            raise NetworkError(f"HTTP {resp.status_code}: {resp.reason}", url=url)
        return resp.text

    # -- catalog ------------------------------------------------------------

    def fetch_mod_links(self) -> list[ModManifestEntry]:
        """Fetch and parse ModLinks.xml. Malformed XML is reported as a NetworkError."""
        text = self._get_text(self.mod_links_url)
        try:
            entries = parse_mod_links(text)
        except ET.ParseError as exc:
            raise NetworkError(f"Failed to parse ModLinks XML: {exc}",
                               url=self.mod_links_url) from exc
        app_log(f"Successfully parsed ModLinks XML ({len(entries)} mods)")
        return entries

    def fetch_api_links(self) -> ApiManifest:
        """Fetch and parse ApiLinks.xml."""
        text = self._get_text(self.api_links_url)
        try:
            manifest = parse_api_links(text)
        except ET.ParseError as exc:
            raise NetworkError(f"Failed to parse API XML: {exc}",
                               url=self.api_links_url) from exc
        app_log(f"Successfully parsed API XML (version {manifest.version or '?'})")
        return manifest
