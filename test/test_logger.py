import json
import logging
from unittest.mock import Mock

import requests

from advisorkit.config import Settings
from advisorkit.utils.logger import (
    MASK,
    TelemetryHandler,
    TelemetryLogger,
    configure_logging,
    sanitize_metadata,
)


def _read_lines(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_sanitize_masks_nested_secrets():
    clean = sanitize_metadata({
        "user": {"password": "hunter2", "panNumber": "ABCDE1234F", "company": "Acme"},
        "pan": "ABCDE1234F",
        "items": [{"authToken": "t"}],
    })
    assert clean["user"]["password"] == MASK
    assert clean["user"]["panNumber"] == MASK
    assert clean["user"]["company"] == "Acme"
    assert clean["pan"] == MASK
    assert clean["items"][0]["authToken"] == MASK


def test_flush_without_endpoint_writes_trace(tmp_path):
    telemetry = TelemetryLogger(log_dir=str(tmp_path))
    telemetry.log("info", "cache", "hit", {"fingerprint": "abc"})
    assert telemetry.flush() is True
    entries = _read_lines(telemetry.log_file)
    assert entries[0]["message"] == "hit"
    assert entries[0]["sessionId"] == telemetry.session_id
    assert telemetry.buffered == 0


def test_flush_posts_batch(tmp_path):
    session = Mock()
    telemetry = TelemetryLogger(endpoint="https://logs.example/api", log_dir=str(tmp_path), session=session)
    telemetry.log_cache_event("store", "abc", ttlHours=24)
    telemetry.log_performance("fetch", 1234.567)

    assert telemetry.flush() is True
    args, kwargs = session.post.call_args
    assert args[0] == "https://logs.example/api"
    assert [e["type"] for e in kwargs["json"]["logs"]] == ["cache", "performance"]
    assert kwargs["json"]["logs"][1]["metadata"]["durationMs"] == 1234.57
    assert telemetry.buffered == 0


def test_buffer_full_triggers_flush(tmp_path):
    session = Mock()
    telemetry = TelemetryLogger(endpoint="https://logs.example/api", log_dir=str(tmp_path),
                                max_buffer_size=3, session=session)
    for n in range(3):
        telemetry.log("info", "system", f"event {n}")
    assert session.post.call_count == 1
    assert telemetry.buffered == 0


def test_failed_flush_requeues_and_bounds(tmp_path):
    session = Mock()
    session.post.side_effect = requests.ConnectionError("backend down")
    telemetry = TelemetryLogger(endpoint="https://logs.example/api", log_dir=str(tmp_path),
                                max_buffer_size=2, session=session)

    telemetry.log("info", "system", "a")
    telemetry.log("info", "system", "b")
    assert session.post.call_count == 1
    assert telemetry.buffered == 2

    # Backing off: a full buffer does not retry immediately.
    for n in range(25):
        telemetry.log("info", "system", f"more {n}")
    assert session.post.call_count == 1
    assert telemetry.buffered == 27

    assert telemetry.flush() is False
    assert telemetry.buffered == 20
    assert telemetry.dropped == 7
    assert len(_read_lines(telemetry.log_file)) == 29


def test_http_error_status_is_a_failure(tmp_path):
    response = Mock()
    response.raise_for_status.side_effect = requests.HTTPError("500")
    session = Mock()
    session.post.return_value = response
    telemetry = TelemetryLogger(endpoint="https://logs.example/api", log_dir=str(tmp_path), session=session)
    telemetry.log("error", "error", "boom")
    assert telemetry.flush() is False
    assert telemetry.buffered == 1


def test_handler_forwards_records(tmp_path):
    telemetry = TelemetryLogger(log_dir=str(tmp_path))
    log = logging.getLogger("advisorkit.tests.handler")
    log.setLevel(logging.INFO)
    handler = TelemetryHandler(telemetry)
    log.addHandler(handler)
    try:
        log.warning("Cache read failed")
    finally:
        log.removeHandler(handler)
    assert telemetry.buffered == 1
    telemetry.flush()
    entry = _read_lines(telemetry.log_file)[0]
    assert entry["level"] == "warning"
    assert entry["metadata"]["logger"] == "advisorkit.tests.handler"


def test_configure_logging_attaches_handler(tmp_path):
    telemetry = configure_logging(Settings(log_dir=str(tmp_path), log_level="DEBUG"), start_flusher=False)
    root = logging.getLogger("advisorkit")
    assert root.level == logging.DEBUG
    assert any(isinstance(h, TelemetryHandler) and h.telemetry is telemetry for h in root.handlers)

    configure_logging(Settings(log_dir=str(tmp_path)), start_flusher=False)
    assert sum(isinstance(h, TelemetryHandler) for h in root.handlers) == 1
