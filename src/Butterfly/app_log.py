"""
app_log.py
Global app log — forwards messages to the UI log panel when set, and always
to the ``butterfly`` logger (console / Log.txt).

The UI calls set_app_log(log_fn, after_fn) once its log widget exists.
Engine code calls app_log(msg) so messages appear in the application log panel.

Thread safety: when app_log is called from a background thread, messages are put
on a queue and drained on the registering thread via a periodic after() callback.
When called from that thread, the message is forwarded immediately.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from pathlib import Path

log = logging.getLogger("butterfly")

_log_fn: callable | None = None
_after_fn: callable | None = None
_main_thread_id: int | None = None
_log_queue: queue.Queue[str] = queue.Queue()
_file_handler: logging.FileHandler | None = None

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s: %(message)s"


def _drain_log_queue() -> None:
    """Run on the UI thread: drain queued messages and forward them. Reschedule."""
    if _log_fn is None:
        return
    try:
        while True:
            msg = _log_queue.get_nowait()
            try:
                _log_fn(msg)
            except Exception:
                log.exception("UI log sink raised")
    except queue.Empty:
        pass
    if _after_fn is not None:
        _after_fn(50, _drain_log_queue)


def set_app_log(log_fn: callable[[str], None], after_fn: callable | None = None) -> None:
    """Register the UI log function and a UI-thread runner (e.g. app.after(ms, cb)).

    Without an after_fn every message is forwarded synchronously from the
    calling thread.
    """
    global _log_fn, _after_fn, _main_thread_id
    _log_fn = log_fn
    _after_fn = after_fn
    _main_thread_id = threading.current_thread().ident
    if after_fn is not None:
        after_fn(0, _drain_log_queue)


def clear_app_log() -> None:
    """Detach the UI sink. Queued messages are dropped."""
    global _log_fn, _after_fn, _main_thread_id
    _log_fn = None
    _after_fn = None
    _main_thread_id = None
    while not _log_queue.empty():
        _log_queue.get_nowait()


def setup_file_log(settings_dir: Path, level: int = logging.INFO) -> Path:
    """Attach a Log.txt file handler inside settings_dir. Safe to call twice."""
    global _file_handler
    settings_dir.mkdir(parents=True, exist_ok=True)
    log_path = settings_dir / "Log.txt"
    if _file_handler is not None:
        if _file_handler.baseFilename == os.path.abspath(log_path):
            return log_path
        log.removeHandler(_file_handler)
        _file_handler.close()
    _file_handler = logging.FileHandler(log_path, encoding="utf-8")
    _file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
    log.addHandler(_file_handler)
    log.setLevel(level)
    log.info("Opened logger at: %s", log_path)
    return log_path


def _forward(message: str) -> None:
    if _log_fn is None:
        return
    try:
        if _after_fn is None or threading.current_thread().ident == _main_thread_id:
            _log_fn(message)
        else:
            _log_queue.put_nowait(message)
    except Exception:
        log.exception("UI log sink raised")


def app_log(message: str) -> None:
    """Write an info message to the log and the application log panel (thread-safe)."""
    log.info(message)
    _forward(message)


def app_log_warning(message: str) -> None:
    log.warning(message)
    _forward(f"Warning: {message}")


def app_log_error(message: str) -> None:
    log.error(message)
    _forward(f"Error: {message}")
