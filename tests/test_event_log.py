"""
Unit tests for the bounded EventLog.

Usage:
    pytest tests/test_event_log.py -v
"""

import threading

import pytest

from bunny_uploader.core.event_log import DebugRecord, ErrorRecord, EventLog


def test_default_capacities():
    log = EventLog()
    assert log.error_capacity == 20
    assert log.debug_capacity == 50


def test_error_ring_keeps_most_recent_twenty():
    log = EventLog()
    for i in range(25):
        log.record_error(f"error {i}", error_code=f"code_{i}")
    errors = log.list_errors()
    assert len(errors) == 20
    assert [e.message for e in errors] == [f"error {i}" for i in range(5, 25)]


def test_debug_ring_keeps_most_recent_fifty():
    log = EventLog()
    for i in range(60):
        log.record_debug(f"line {i}")
    lines = log.list_debug()
    assert len(lines) == 50
    assert lines[0].message == "line 10"
    assert lines[-1].message == "line 59"


def test_record_error_accepts_record_instance():
    log = EventLog()
    record = ErrorRecord(message="boom", error_code="x", attachment_ref="42", filename="a.mp3")
    stored = log.record_error(record)
    assert stored is record
    assert log.list_errors() == [record]


def test_record_error_builds_record_from_message():
    log = EventLog()
    stored = log.record_error("boom", "ftp_login_failed", attachment_ref="7", filename="b.wav")
    assert stored.error_code == "ftp_login_failed"
    assert stored.attachment_ref == "7"
    assert stored.filename == "b.wav"
    assert stored.timestamp.tzinfo is not None


def test_record_debug_accepts_record_instance():
    log = EventLog()
    record = DebugRecord("hello")
    log.record_debug(record)
    assert log.list_debug() == [record]


def test_list_returns_a_copy():
    log = EventLog()
    log.record_error("one")
    snapshot = log.list_errors()
    log.record_error("two")
    assert len(snapshot) == 1


def test_clear_is_separate_per_ring():
    log = EventLog()
    log.record_error("e")
    log.record_debug("d")
    log.clear_errors()
    assert log.list_errors() == []
    assert len(log.list_debug()) == 1
    log.clear_debug()
    assert log.list_debug() == []


def test_custom_capacity():
    log = EventLog(error_capacity=3, debug_capacity=2)
    for i in range(5):
        log.record_error(str(i))
        log.record_debug(str(i))
    assert [e.message for e in log.list_errors()] == ["2", "3", "4"]
    assert [d.message for d in log.list_debug()] == ["3", "4"]


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        EventLog(error_capacity=0)


def test_concurrent_appends_respect_capacity():
    log = EventLog(error_capacity=20)

    def worker(n):
        for i in range(100):
            log.record_error(f"{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    errors = log.list_errors()
    assert len(errors) == 20
    # Each worker's own records must still appear in order.
    for n in range(8):
        own = [int(e.message.split("-")[1]) for e in errors if e.message.startswith(f"{n}-")]
        assert own == sorted(own)
