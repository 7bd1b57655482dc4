# FILE: langsync/utils/logging.py
"""
Unified logging helpers for langsync

- Creates a package logger that writes to stderr and, when configured, to a rotating log file.
- Honors log level from langsync.json via "log_level" (e.g. "INFO", "DEBUG") or the
  LANGSYNC_LOG_LEVEL environment variable.
- Provides small helpers to mask API keys and compact JSON for log lines.
- Tiny HTTP request/response logging helpers for consistent translator traces.
"""

import json
import logging
import os
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"


# ---------------------------
# Level helpers
# ---------------------------

def _level_from_string(level_str: str) -> int:
    """Map string level to logging constant; defaults to INFO on unknown."""
    level = getattr(logging, str(level_str).upper(), None)
    return level if isinstance(level, int) else logging.INFO


def _level_from_env(default: int = logging.WARNING) -> int:
    """Read desired log level from the environment (key: LANGSYNC_LOG_LEVEL)."""
    val = os.getenv("LANGSYNC_LOG_LEVEL")
    return _level_from_string(val) if val else default


# ---------------------------
# Public logger factory
# ---------------------------

def get_sync_logger(
    name: str = "langsync",
    *,
    log_file: Optional[str] = None,
    file_count: int = 5,
    max_bytes: int = 1024 * 1024,
    default_level: int = logging.WARNING,
) -> logging.Logger:
    """
    Create or return the package logger.

    Console output goes to stderr with a short format. When ``log_file`` is given a
    RotatingFileHandler keeps ``file_count`` backups next to it.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(h)
        logger.setLevel(_level_from_env(default=default_level))
    if log_file:
        attach_log_file(logger, log_file, file_count=file_count, max_bytes=max_bytes)
    return logger


def attach_log_file(logger: logging.Logger, log_file: str, *, file_count: int = 5, max_bytes: int = 1024 * 1024) -> None:
    """Add a rotating file handler once per target path."""
    target = os.path.abspath(log_file)
    for h in logger.handlers:
        if isinstance(h, RotatingFileHandler) and getattr(h, "baseFilename", None) == target:
            return
    os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
    fh = RotatingFileHandler(target, maxBytes=max_bytes, backupCount=file_count, encoding="utf-8")
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(fh)


def configure_from(cfg: Dict[str, Any]) -> logging.Logger:
    """Apply log_level / log_file / log_file_count from a loaded config dict."""
    level = cfg.get("log_level")
    if level and not os.getenv("LANGSYNC_LOG_LEVEL"):
        sync_logger.setLevel(_level_from_string(level))
    if cfg.get("log_file"):
        attach_log_file(sync_logger, cfg["log_file"], file_count=int(cfg.get("log_file_count") or 5))
    return sync_logger


# Singleton logger used across the package
sync_logger = get_sync_logger()


# ---------------------------
# Mask/format utilities
# ---------------------------

def mask_token(tok: Optional[str], *, keep: int = 6) -> str:
    """Mask an API key/secret for logs, keeping first `keep` chars."""
    if not tok:
        return "<none>"
    t = str(tok)
    if len(t) <= keep:
        return "*" * len(t)
    return t[:keep] + "…" + ("*" * max(0, len(t) - keep - 1))


def compact_json(obj: Any, limit: int = 1200) -> str:
    """Compact JSON string for logging; truncate if too long."""
    try:
        s = json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        s = str(obj)
    return s if len(s) <= limit else s[:limit] + "…(truncated)"


# ---------------------------
# HTTP trace helpers
# ---------------------------

def log_http_request(
    logger: logging.Logger,
    *,
    method: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
) -> None:
    """Consistent request breadcrumb."""
    safe_params = dict(params or {})
    # Never log raw credentials
    for k in list(safe_params.keys()):
        if k.lower() in {"key", "auth_key", "api_key", "token", "authorization"}:
            safe_params[k] = mask_token(str(safe_params[k]))
    logger.info("HTTP %s %s params=%s", method.upper(), url, compact_json(safe_params))


def log_http_response(
    logger: logging.Logger,
    *,
    url: str,
    status: int,
    body: Any,
) -> None:
    """Consistent response breadcrumb."""
    level = logging.INFO if 200 <= status < 400 else logging.ERROR
    logger.log(level, "HTTP %s status=%s body=%s", url, status, compact_json(body))


# ---------------------------
# Temporary level override
# ---------------------------

@contextmanager
def temporarily(level: int):
    """
    Temporarily raise/lower the package logger level.

    Example:
        with temporarily(logging.DEBUG):
            # noisy section
            ...
    """
    logger = sync_logger
    old = logger.level
    try:
        logger.setLevel(level)
        yield logger
    finally:
        logger.setLevel(old)
