import threading

import pytest

from Butterfly.errors import FilesystemError
from Butterfly.settings import Settings, load_settings
from Butterfly.state_store import ReadWriteLock, SettingsStore
from ModLinks.mod_links import LocalModRecord


def test_store_loads_existing_file(tmp_path):
    path = tmp_path / "Settings.json"
    path.write_text('{"Language": "Français"}', encoding="utf-8")
    assert SettingsStore(path).snapshot().language == "Français"


def test_snapshot_is_a_private_copy(tmp_path):
    store = SettingsStore(tmp_path / "Settings.json", Settings(language="English"))
    snap = store.snapshot()
    snap.language = "changed"
    assert store.snapshot().language == "English"


def test_update_persists_and_returns_result(tmp_path):
    path = tmp_path / "Settings.json"
    store = SettingsStore(path, Settings())

    def _apply(s):
        s.theme = "Light"
        return "ok"

    assert store.update(_apply) == "ok"
    assert store.snapshot().theme == "Light"
    assert load_settings(path).theme == "Light"


def test_failed_update_changes_nothing(tmp_path):
    store = SettingsStore(tmp_path / "Settings.json", Settings())

    def _boom(s):
        s.theme = "Light"
        raise ValueError("nope")

    with pytest.raises(ValueError):
        store.update(_boom)
    assert store.snapshot().theme == "Dark"
    assert not (tmp_path / "Settings.json").exists()


def test_failed_save_keeps_memory_state(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    store = SettingsStore(blocker / "Settings.json", Settings())

    def _apply(s):
        s.language = "Deutsch"

    with pytest.raises(FilesystemError):
        store.update(_apply)
    assert store.snapshot().language == "English"


def test_reload_reads_file_again(tmp_path):
    path = tmp_path / "Settings.json"
    store = SettingsStore(path, Settings())
    path.write_text('{"Theme": "Light"}', encoding="utf-8")
    assert store.reload().theme == "Light"
    assert store.snapshot().theme == "Light"


def test_concurrent_updates_do_not_lose_writes(tmp_path):
    store = SettingsStore(tmp_path / "Settings.json", Settings())

    def _add(i):
        def _apply(s):
            s.mod_links.append(LocalModRecord(f"mod{i}"))
        store.update(_apply)

    threads = [threading.Thread(target=_add, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    names = {r.name for r in store.snapshot().mod_links}
    assert names == {f"mod{i}" for i in range(20)}
    assert len(load_settings(store.path).mod_links) == 20


def test_rw_lock_allows_concurrent_readers():
    lock = ReadWriteLock()
    both_inside = threading.Barrier(2, timeout=5)

    def reader():
        with lock.read():
            both_inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert not both_inside.broken


def test_rw_lock_writer_excludes_readers():
    lock = ReadWriteLock()
    events = []
    writer_in = threading.Event()

    def writer():
        with lock.write():
            writer_in.set()
            events.append("write-start")
            threading.Event().wait(0.05)
            events.append("write-end")

    def reader():
        writer_in.wait(5)
        with lock.read():
            events.append("read")

    tw = threading.Thread(target=writer)
    tr = threading.Thread(target=reader)
    tw.start()
    tr.start()
    tw.join(5)
    tr.join(5)
    assert events == ["write-start", "write-end", "read"]
