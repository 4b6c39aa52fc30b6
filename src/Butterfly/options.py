"""
options.py
Runtime options for the engine: integrity checking, timeouts, pool size and
remote catalog URLs. Values can be overridden through environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from Butterfly.app_log import app_log_warning

MOD_LINKS_URL = "https://raw.githubusercontent.com/hk-modding/modlinks/main/ModLinks.xml"
API_LINKS_URL = "https://raw.githubusercontent.com/hk-modding/modlinks/main/ApiLinks.xml"

# Default chunk size for streaming downloads (256 KB)
CHUNK_SIZE = 256 * 1024

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class EngineOptions:
    verify_hashes: bool = True
    hash_retry: bool = True           # re-download once on a hash mismatch
    catalog_timeout: float = 30.0
    download_timeout: float = 60.0
    chunk_size: int = CHUNK_SIZE
    max_workers: int = field(default_factory=_default_workers)
    mod_links_url: str = MOD_LINKS_URL
    api_links_url: str = API_LINKS_URL

    @classmethod
    def from_env(cls) -> EngineOptions:
        """Build options from defaults plus any BUTTERFLY_* environment overrides."""
        opts = cls()
        verify = os.environ.get("BUTTERFLY_VERIFY_HASHES")
        if verify is not None:
            opts.verify_hashes = verify.strip().lower() not in _FALSE_VALUES
        opts.mod_links_url = os.environ.get("BUTTERFLY_MODLINKS_URL", opts.mod_links_url)
        opts.api_links_url = os.environ.get("BUTTERFLY_APILINKS_URL", opts.api_links_url)
        timeout = os.environ.get("BUTTERFLY_DOWNLOAD_TIMEOUT")
        if timeout:
            try:
                opts.download_timeout = float(timeout)
            except ValueError:
                app_log_warning(f"Ignoring invalid BUTTERFLY_DOWNLOAD_TIMEOUT {timeout!r}")
        return opts
