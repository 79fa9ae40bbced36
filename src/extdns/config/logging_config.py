from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

_TAGS = {
    logging.DEBUG: "[debug]",
    logging.INFO: "[info]",
    logging.WARNING: "[warn]",
    logging.ERROR: "[error]",
    logging.CRITICAL: "[crit]",
}

# Client libraries that log every HTTP request at DEBUG/INFO.
_CHATTY_LOGGERS = ("urllib3", "botocore", "boto3", "google", "requests")


def _level_tag(levelno: int) -> str:
    return _TAGS.get(levelno, f"[lvl{levelno}]")


class SyslogFormatter(logging.Formatter):
    """Formatter for syslog output without timestamps (syslog adds its own)."""

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return f"{record.level_tag} {record.name}: {record.getMessage()}"


class BracketLevelFormatter(logging.Formatter):
    """Formatter with bracketed lowercase level tags and UTC timestamps."""

    def formatTime(self, record, datefmt=None):
        """Format the record's creation time as UTC ISO-8601 with Z suffix."""
        return datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return super().format(record)


def resolve_level(value: Any) -> int:
    """Brief: Map a config level name to a logging constant (default INFO).

    Example:
      >>> resolve_level("warn") == logging.WARNING
      True
    """
    return _LEVELS.get(str(value or "info").strip().lower(), logging.INFO)


def init_logging(cfg: Optional[Dict[str, Any]]) -> None:
    """
    Initialize logging for the agent.

    Args:
        cfg: Logging configuration dictionary with optional keys:
            - level: debug, info, warn, error, crit (default: info)
            - stderr: boolean to log to stderr (default: True)
            - file: string path to log file (optional)
            - syslog: boolean or dict to enable syslog logging (optional)
                Can be a boolean (True uses defaults) or a dict with:
                - address: Unix socket path (default: /dev/log)
                - facility: syslog facility (default: USER)
                - tag: program identifier to prepend (default: extdns)

    Example config:
        {
            "level": "debug",
            "file": "/var/log/extdns.log",
            "syslog": {"tag": "external-dns"}
        }
    """
    cfg = cfg or {}
    level = resolve_level(cfg.get("level", "info"))

    fmt = "%(asctime)s %(level_tag)s %(name)s: %(message)s"
    formatter = BracketLevelFormatter(fmt=fmt)

    root = logging.getLogger()
    root.setLevel(level)

    # Re-initialisation replaces handlers instead of stacking them.
    for h in list(root.handlers):
        root.removeHandler(h)

    if cfg.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    syslog_cfg = cfg.get("syslog")
    if syslog_cfg:
        try:
            options = syslog_cfg if isinstance(syslog_cfg, dict) else {}
            address = options.get("address", "/dev/log")
            facility = getattr(
                logging.handlers.SysLogHandler,
                f"LOG_{str(options.get('facility', 'USER')).upper()}",
                logging.handlers.SysLogHandler.LOG_USER,
            )
            syslog_handler = logging.handlers.SysLogHandler(
                address=address, facility=facility
            )
            syslog_handler.ident = f"{options.get('tag', 'extdns')}: "
            syslog_handler.setFormatter(SyslogFormatter())
            root.addHandler(syslog_handler)
        except (OSError, ValueError) as e:  # pragma: no cover - environment-specific
            root.warning("Failed to configure syslog: %s", e)

    chatty_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)

    logging.captureWarnings(True)
