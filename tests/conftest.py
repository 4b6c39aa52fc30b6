import io
import zipfile
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests

from Butterfly.app_log import clear_app_log
from Butterfly.lifecycle import ModLifecycleEngine
from Butterfly.options import EngineOptions
from Butterfly.settings import Settings
from Butterfly.state_store import SettingsStore
from ModLinks.mod_download import ModDownloader


class FakeResponse:
    """Just enough of requests.Response for the downloader and catalog client."""

    def __init__(self, body=b"", status=200, headers=None, with_length=True, fail_after=None):
        self.body = body
        self.status_code = status
        self.reason = "OK" if status < 400 else "Error"
        self.headers = dict(headers or {})
        if with_length and "Content-Length" not in self.headers:
            self.headers["Content-Length"] = str(len(body))
        self.fail_after = fail_after
        self.closed = False

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return self.body.decode("utf-8")

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} {self.reason}")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            if self.fail_after is not None and i >= self.fail_after:
                raise requests.ConnectionError("connection reset")
            yield self.body[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


class FakeSession:
    """
    Maps URL -> FakeResponse, bytes, str, an exception instance, or a list of
    those (consumed in order, one per request).
    """

    def __init__(self, routes=None):
        self.headers = {}
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, stream=False, timeout=None):
        self.calls.append(url)
        if url not in self.routes:
            return FakeResponse(b"not found", status=404)
        route = self.routes[url]
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, str):
            route = route.encode("utf-8")
        if isinstance(route, bytes):
            route = FakeResponse(route)
        return route


def build_zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as z:
        for name, data in files.items():
            z.writestr(name, data)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def _detach_app_log():
    yield
    clear_app_log()


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def mods_root(tmp_path):
    root = tmp_path / "game" / "hollow_knight_Data" / "Managed" / "Mods"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def store(tmp_path, mods_root):
    return SettingsStore(tmp_path / "config" / "Settings.json",
                         Settings(mods_path=str(mods_root)))


@pytest.fixture
def pool():
    executor = ThreadPoolExecutor(max_workers=2)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture
def options():
    return EngineOptions(max_workers=2)


@pytest.fixture
def engine(store, pool, session, options):
    return ModLifecycleEngine(store, pool,
                              downloader=ModDownloader(session=session, chunk_size=16),
                              options=options)
