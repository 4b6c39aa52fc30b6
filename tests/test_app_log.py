import logging
import threading

from Butterfly.app_log import (
    app_log,
    app_log_error,
    app_log_warning,
    set_app_log,
    setup_file_log,
)


def test_messages_reach_registered_sink():
    seen = []
    set_app_log(seen.append)
    app_log("hello")
    app_log_warning("careful")
    app_log_error("broken")
    assert seen == ["hello", "Warning: careful", "Error: broken"]


def test_messages_go_to_the_butterfly_logger(caplog):
    with caplog.at_level(logging.INFO, logger="butterfly"):
        app_log("to the logger")
    assert "to the logger" in caplog.text


def test_worker_thread_messages_are_queued_until_drained():
    seen = []
    scheduled = []
    set_app_log(seen.append, after_fn=lambda ms, cb: scheduled.append(cb))
    drain = scheduled.pop(0)

    worker = threading.Thread(target=app_log, args=("from worker",))
    worker.start()
    worker.join()
    assert seen == []

    drain()
    assert seen == ["from worker"]
    assert scheduled  # drain rescheduled itself


def test_failing_sink_does_not_break_callers():
    def sink(msg):
        raise RuntimeError("ui gone")

    set_app_log(sink)
    app_log("still fine")


def test_setup_file_log_writes_log_txt(tmp_path):
    path = setup_file_log(tmp_path)
    assert setup_file_log(tmp_path) == path
    app_log("written to file")
    for handler in logging.getLogger("butterfly").handlers:
        handler.flush()
    assert path.name == "Log.txt"
    assert "written to file" in path.read_text(encoding="utf-8")
