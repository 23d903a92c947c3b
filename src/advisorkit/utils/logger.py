"""
Telemetry logging for advisorkit.

TelemetryLogger buffers structured log entries and ships them in batches to
a backend endpoint. Entries that cannot be delivered are kept for the next
flush (up to a bound) and appended to a local JSON-lines trace file so
nothing is lost silently.
"""

import atexit
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from advisorkit.config import Settings

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("password", "token", "pannumber", "aadhar", "accountnumber")
MASK = "***MASKED***"


def sanitize_metadata(value: Any) -> Any:
    """Mask values whose key looks sensitive, at any depth."""
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if lowered == "pan" or any(s in lowered for s in SENSITIVE_KEYS):
                result[key] = MASK
            else:
                result[key] = sanitize_metadata(item)
        return result
    if isinstance(value, (list, tuple)):
        return [sanitize_metadata(v) for v in value]
    return value


class TelemetryLogger:
    def __init__(
        self,
        endpoint: Optional[str] = None,
        log_dir: str = "logs",
        max_buffer_size: int = 50,
        flush_interval: float = 5.0,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the telemetry logger. Without an endpoint entries only go to the trace file."""
        self.endpoint = endpoint
        self.max_buffer_size = max_buffer_size
        self.max_pending = max_buffer_size * 10
        self.flush_interval = flush_interval
        self.timeout = timeout
        self.http = session or requests.Session()

        self.log_dir = Path(log_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = self.log_dir / f"telemetry_{timestamp}.jsonl"

        self.session_id = f"session_{timestamp}_{uuid.uuid4().hex[:9]}"
        self.user_id: Optional[str] = None

        self._buffer: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self.dropped = 0
        self._last_failure: Optional[float] = None

    def set_user_id(self, user_id: Optional[str]):
        self.user_id = user_id

    def log(self, level: str, log_type: str, message: str, metadata: Optional[Dict[str, Any]] = None):
        """Queue one entry; flushes when the buffer is full."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "type": log_type,
            "message": message,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "metadata": sanitize_metadata(metadata or {}),
        }
        with self._lock:
            self._buffer.append(entry)
            full = len(self._buffer) >= self.max_buffer_size
        if full and not self._backing_off():
            self.flush()

    def log_cache_event(self, event: str, fingerprint: str, **metadata):
        self.log("info", "cache", event, {"fingerprint": fingerprint, **metadata})

    def log_performance(self, operation: str, duration_ms: float, **metadata):
        self.log("info", "performance", operation, {"durationMs": round(duration_ms, 2), **metadata})

    def _backing_off(self) -> bool:
        """After a failed delivery, wait one flush interval before trying again."""
        return self._last_failure is not None and time.monotonic() - self._last_failure < self.flush_interval

    @property
    def buffered(self) -> int:
        with self._lock:
            return len(self._buffer)

    def flush(self) -> bool:
        """
        Send buffered entries. Returns True if the buffer was delivered (or
        was empty); on failure the batch is re-queued and written to the
        trace file.
        """
        with self._lock:
            batch = self._buffer
            self._buffer = []
        if not batch:
            return True

        if not self.endpoint:
            self._write_entries(batch)
            return True

        try:
            response = self.http.post(
                self.endpoint,
                json={
                    "logs": batch,
                    "sessionId": self.session_id,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            self._last_failure = None
            logger.debug("Flushed %s telemetry entries", len(batch))
            return True
        except requests.RequestException as e:
            logger.warning("Failed to flush %s telemetry entries: %s", len(batch), e)
            self._last_failure = time.monotonic()
            self._write_entries(batch)
            self._requeue(batch)
            return False

    def _requeue(self, batch: List[Dict[str, Any]]):
        with self._lock:
            merged = batch + self._buffer
            overflow = len(merged) - self.max_pending
            if overflow > 0:
                # Oldest entries go first; they are already in the trace file.
                self.dropped += overflow
                merged = merged[overflow:]
            self._buffer = merged

    def _write_entries(self, entries: List[Dict[str, Any]]):
        """Append JSON entries to the trace file."""
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, "a", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.warning("Cannot write telemetry trace %s: %s", self.log_file, e)

    # Periodic flushing

    def start(self):
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._run, daemon=True, name="TelemetryFlush")
        self._worker.start()
        atexit.register(self.close)

    def _run(self):
        while not self._stop.wait(self.flush_interval):
            if self.buffered:
                self.flush()

    def close(self):
        self._stop.set()
        if self._worker is not None:
            self._worker.join(timeout=self.timeout)
            self._worker = None
        self.flush()


class TelemetryHandler(logging.Handler):
    """Forwards standard logging records into a TelemetryLogger."""

    def __init__(self, telemetry: TelemetryLogger, level: int = logging.INFO):
        super().__init__(level)
        self.telemetry = telemetry

    def emit(self, record: logging.LogRecord):
        if record.name == __name__:
            # Skip the flusher's own records.
            return
        try:
            metadata = {"logger": record.name, "module": record.module, "line": record.lineno}
            if record.exc_info:
                metadata["exception"] = self.format(record).splitlines()[-1]
            log_type = "error" if record.levelno >= logging.ERROR else "system"
            self.telemetry.log(record.levelname.lower(), log_type, record.getMessage(), metadata)
        except Exception:
            self.handleError(record)


def configure_logging(settings: Optional[Settings] = None, start_flusher: bool = True) -> TelemetryLogger:
    """
    Set up console logging for the ``advisorkit`` logger tree and attach a
    telemetry handler. Returns the TelemetryLogger so callers can close it.
    """
    settings = settings or Settings()
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("advisorkit")
    root.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, TelemetryHandler) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        root.addHandler(console)

    for handler in [h for h in root.handlers if isinstance(h, TelemetryHandler)]:
        root.removeHandler(handler)

    telemetry = TelemetryLogger(
        endpoint=settings.telemetry_endpoint,
        log_dir=settings.log_dir,
        max_buffer_size=settings.telemetry_buffer_size,
        flush_interval=settings.telemetry_flush_interval,
        timeout=settings.telemetry_timeout,
    )
    root.addHandler(TelemetryHandler(telemetry, level=max(level, logging.INFO)))
    if start_flusher:
        telemetry.start()
    return telemetry
