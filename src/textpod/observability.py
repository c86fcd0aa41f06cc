"""Logging and metrics for the textpod server.

Logs go to a rotating file under ``config.log_dir`` (and optionally the
console). Metrics are kept in memory per operation name and are served by
the ``/health`` endpoint and the ``textpod_health`` MCP tool.
"""
import logging
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, Optional, Union

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "textpod"
LOG_FILE_NAME = "textpod.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_logging_configured = False


def _has_console_handler(target: logging.Logger) -> bool:
    return any(
        type(handler) is logging.StreamHandler for handler in target.handlers
    )


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Send the ``textpod`` logger hierarchy to a rotating log file.

    Args:
        log_dir: Directory for ``textpod.log``. Defaults to config.log_dir
        level: Level for the logger and its handlers
        max_bytes: Size at which the log file is rotated
        backup_count: Rotated files to keep
        console: Also log to stderr. Must be False when stdio carries MCP

    Returns:
        The log directory
    """
    global _logging_configured

    if log_dir is None:
        from textpod.config import config

        log_dir = config.log_dir
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    # Reconfiguring replaces the file handler rather than stacking another
    for handler in list(package_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            package_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers = [file_handler]
    if console and not _has_console_handler(package_logger):
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    _logging_configured = True
    package_logger.info(f"Logging to {log_file} (rotating at {max_bytes} bytes)")
    return log_path


def is_logging_configured() -> bool:
    return _logging_configured


@dataclass
class OperationMetrics:
    """Running totals for one operation name."""

    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: Optional[float] = None
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def add(self, duration_ms: float, success: bool, error: Optional[str]) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        if self.min_duration_ms is None or duration_ms < self.min_duration_ms:
            self.min_duration_ms = duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            self.last_error = error
            self.last_error_time = datetime.now(timezone.utc)

    def snapshot(self) -> Dict[str, Any]:
        average = self.total_duration_ms / self.count if self.count else 0.0
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / self.count if self.count else 0,
            "avg_duration_ms": round(average, 2),
            "min_duration_ms": round(self.min_duration_ms or 0.0, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_error": self.last_error,
            "last_error_time": (
                self.last_error_time.isoformat() if self.last_error_time else None
            ),
        }


class MetricsCollector:
    """Thread-safe in-memory metrics, keyed by operation name.

    Note mutations are recorded by ``timed_operation``; each background
    link job records one ``resolve_link`` entry when it finishes.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._operations: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self._started = datetime.now(timezone.utc)

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._operations[operation].add(duration_ms, success, error)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation snapshot."""
        with self._lock:
            return {name: m.snapshot() for name, m in self._operations.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Totals across all operations, plus uptime."""
        with self._lock:
            total = sum(m.count for m in self._operations.values())
            succeeded = sum(m.success_count for m in self._operations.values())
            failed = sum(m.error_count for m in self._operations.values())
            uptime = datetime.now(timezone.utc) - self._started
            return {
                "uptime_seconds": uptime.total_seconds(),
                "total_operations": total,
                "total_success": succeeded,
                "total_errors": failed,
                "overall_success_rate": succeeded / total if total else 1.0,
                "operations_tracked": list(self._operations),
            }

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._started = datetime.now(timezone.utc)


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context: Any) -> Iterator[Dict[str, Any]]:
    """Time a block, record it in ``metrics`` and log start and end at DEBUG.

    The yielded dict can be filled with results (note id, link count) that
    end up in the END log line.

    Example:
        with timed_operation("create_note") as op:
            note = store.create(content)
            op["note_id"] = note.id
    """
    correlation_id = uuid.uuid4().hex[:8]
    info: Dict[str, Any] = {"correlation_id": correlation_id}
    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{correlation_id}] START {operation} ({context_str})")

    started = time.perf_counter()
    error: Optional[str] = None
    try:
        yield info
    except Exception as e:
        error = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, duration_ms, error is None, error)
        results = ", ".join(
            f"{k}={v}" for k, v in info.items() if k != "correlation_id"
        )
        status = "OK" if error is None else f"ERROR: {error}"
        logger.debug(
            f"[{correlation_id}] END {operation} ({duration_ms:.2f}ms) [{status}] {results}"
        )
