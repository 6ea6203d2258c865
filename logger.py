"""
Structured logging for the Stayava booking assistant.

Every module gets a named AppLogger. Console output is human-readable,
and when LOG_FILE is set each record is also written as one JSON line so
completion failures and turn events can be grepped and aggregated.
"""

import os
import sys
import logging
import json
from datetime import datetime
from typing import Any, Dict, Optional
import traceback


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter used for the optional log file."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "event", None):
            log_data["event"] = record.event

        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with colors."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m"
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]
        timestamp = datetime.utcnow().strftime("%H:%M:%S")

        msg = f"{color}[{timestamp}] {record.levelname:8}{reset} | {record.name}: {record.getMessage()}"

        event = getattr(record, "event", None)
        if event:
            msg += f" <{event}>"

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            data_str = ", ".join(f"{k}={v}" for k, v in extra_data.items())
            msg += f" | {data_str}"

        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


class AppLogger:
    """Named logger accepting keyword extra data on every call."""

    _instances: Dict[str, 'AppLogger'] = {}

    def __init__(self, name: str, level: str = None):
        """
        Args:
            name: Logger name (usually module name)
            level: Log level, defaults to LOG_LEVEL or INFO
        """
        self.name = name
        self.level = level or os.getenv("LOG_LEVEL", "INFO")
        self.logger = logging.getLogger(name)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Setup logging handlers."""
        if self.logger.handlers:
            return

        self.logger.setLevel(getattr(logging, self.level.upper(), logging.INFO))

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ConsoleFormatter())
        self.logger.addHandler(console_handler)

        log_file = os.getenv("LOG_FILE")
        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(file_handler)

        self.logger.propagate = False

    def _log(
        self,
        level: int,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        event: str = None,
        exc_info: bool = False
    ) -> None:
        """Internal logging method with extra data support."""
        if not self.logger.isEnabledFor(level):
            return
        if exc_info:
            extra = {**(extra or {}), "traceback": traceback.format_exc()}
        record = self.logger.makeRecord(
            self.name, level, "", 0, message, (), None
        )
        record.extra_data = extra or None
        record.event = event
        self.logger.handle(record)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, kwargs, exc_info=exc_info)

    def critical(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log critical message."""
        self._log(logging.CRITICAL, message, kwargs, exc_info=exc_info)

    def request(self, method: str, path: str, status: int, duration_ms: float, **kwargs) -> None:
        """Log a finished HTTP request."""
        self._log(
            logging.INFO,
            f"{method} {path} -> {status}",
            {"method": method, "path": path, "status": status,
             "duration_ms": round(duration_ms, 2), **kwargs},
            event="http_request"
        )

    def llm_call(self, model: str, duration_ms: float, **kwargs) -> None:
        """Log a successful completion call."""
        self._log(
            logging.INFO,
            f"Completion from {model}",
            {"model": model, "duration_ms": round(duration_ms, 2), **kwargs},
            event="llm_call"
        )

    def completion_failure(self, kind: str, **kwargs) -> None:
        """
        Log one completion failure.

        The caller always gets a fallback reply, so this event is the only
        place where the distinct failure kinds stay visible.

        Args:
            kind: unconfigured, http_status, timeout, transport or malformed_body
        """
        level = logging.INFO if kind == "unconfigured" else logging.WARNING
        self._log(
            level,
            f"Completion failed ({kind}), using fallback reply",
            {"kind": kind, **kwargs},
            event="completion_failure"
        )

    def turn(self, session_id: str, state: str, source: str, duration_ms: float, **kwargs) -> None:
        """Log a processed conversation turn."""
        self._log(
            logging.INFO,
            f"Turn handled -> {state}",
            {"session_id": session_id, "state": state, "source": source,
             "duration_ms": round(duration_ms, 2), **kwargs},
            event="turn"
        )

    def storage_error(self, operation: str, error: str, **kwargs) -> None:
        """Log a failed conversation store operation."""
        self._log(
            logging.ERROR,
            f"Storage operation '{operation}' failed: {error}",
            {"operation": operation, **kwargs},
            event="storage_error"
        )


def get_logger(name: str) -> AppLogger:
    """
    Get or create a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        AppLogger instance
    """
    if name not in AppLogger._instances:
        AppLogger._instances[name] = AppLogger(name)
    return AppLogger._instances[name]
