"""
Logging Configuration for Switchboard.

Provides structured logging with JSON output and redaction of personal data
(e-mail addresses, home directories, tokens) in files written to disk.
"""

import logging
import logging.handlers
import json
import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from ...utils.config_paths import get_logs_dir

_EMAIL_RE = re.compile(r'([A-Za-z0-9._%+\-]+)@([A-Za-z0-9.\-]+\.[A-Za-z]{2,})')
_UNIX_HOME_RE = re.compile(r'/(home|Users)/[^/\s"\']+')
_WINDOWS_HOME_RE = re.compile(r'([A-Za-z]:\\+Users\\+)[^\\\s"\']+', re.IGNORECASE)
_SECRET_RE = re.compile(
    r'\b(key|token|secret|password|access_token|id_token)(["\']?\s*[=:]\s*["\']?)([^\s"\',}]{8,})',
    re.IGNORECASE,
)


def mask_email(email: str) -> str:
    """
    Mask the local part of an e-mail address.

    ``user@example.com`` becomes ``u**r@example.com``; a two character local
    part keeps only its first character and a single character is left alone.
    """
    local, sep, domain = email.partition('@')
    if not sep:
        return email
    if len(local) <= 1:
        masked = local
    elif len(local) == 2:
        masked = local[0] + '*'
    else:
        masked = local[0] + '*' * (len(local) - 2) + local[-1]
    return f"{masked}@{domain}"


def redact(text: str) -> str:
    """Apply every redaction rule to a log message."""
    text = _EMAIL_RE.sub(lambda m: mask_email(m.group(0)), text)
    text = _UNIX_HOME_RE.sub(lambda m: f"/{m.group(1)}/****", text)
    text = _WINDOWS_HOME_RE.sub(lambda m: f"{m.group(1)}****", text)
    text = _SECRET_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}****", text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites the record message with personal data masked."""

    def filter(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact(message)
        record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = redact(self.formatException(record.exc_info))

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in ('name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
                           'filename', 'module', 'lineno', 'funcName', 'created',
                           'msecs', 'relativeCreated', 'thread', 'threadName',
                           'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
                           'taskName', 'message'):
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def cleanup_old_logs(log_dir: Path, retention_days: int) -> int:
    """
    Clean up old log files beyond the retention period.

    Args:
        log_dir: Directory containing log files
        retention_days: Number of days to retain log files

    Returns:
        Number of files cleaned up
    """
    cutoff_date = datetime.now() - timedelta(days=retention_days)
    cleaned_count = 0

    # Rotated main and error logs
    for pattern in ('switchboard.log.*', 'switchboard-errors.log.*'):
        for log_file in log_dir.glob(pattern):
            try:
                file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
                if file_mtime < cutoff_date:
                    log_file.unlink()
                    cleaned_count += 1
            except OSError as e:
                print(f"Failed to clean up log file {log_file}: {e}", file=sys.stderr)

    return cleaned_count


def _rotating_handler(path: Path, level: int, retention_days: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        str(path),
        when='midnight',  # Rotate at midnight
        interval=1,
        backupCount=retention_days,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RedactingFilter())
    return handler


def setup_logging(debug: bool = False, log_dir: Optional[str] = None, retention_days: int = 10) -> Path:
    """
    Setup logging configuration for Switchboard with daily rotation.

    Args:
        debug: Enable debug level logging
        log_dir: Directory for log files (defaults to user data dir)
        retention_days: Number of days to retain log files (default: 10)

    Returns:
        The directory log files are written to
    """
    if log_dir:
        log_dir_path = Path(log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)
    else:
        log_dir_path = get_logs_dir()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Console handler with simple format
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(
        log_dir_path / 'switchboard.log', logging.DEBUG, retention_days))
    root_logger.addHandler(_rotating_handler(
        log_dir_path / 'switchboard-errors.log', logging.ERROR, retention_days))

    removed = cleanup_old_logs(log_dir_path, retention_days)

    logging.getLogger("switchboard").setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("PyQt6").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    logger = logging.getLogger("switchboard.logging")
    logger.info(f"Logging initialized - Debug: {debug}, Log dir: {log_dir_path}")
    if removed:
        logger.info(f"Log cleanup: removed {removed} old log file(s)")
    return log_dir_path


def set_debug(debug: bool) -> None:
    """Switch levels at runtime when the debug_mode setting changes."""
    level = logging.DEBUG if debug else logging.INFO
    logging.getLogger().setLevel(level)
    logging.getLogger("switchboard").setLevel(level)
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)
