"""
ModLinks catalog integration package.

Provides the typed catalog model, the ModLinks/ApiLinks fetcher, and the
streaming downloader used to pull mod archives.
"""

from .mod_links import (
    ApiManifest,
    ApiPlatformLinks,
    LocalModRecord,
    ModLink,
    ModManifestEntry,
    parse_api_links,
    parse_mod_links,
)
from .mod_links_api import ModLinksAPI
from .mod_download import DownloadResult, ModDownloader

__all__ = ["ApiManifest", "ApiPlatformLinks", "LocalModRecord", "ModLink",
           "ModManifestEntry", "parse_api_links", "parse_mod_links",
           "ModLinksAPI", "DownloadResult", "ModDownloader"]
