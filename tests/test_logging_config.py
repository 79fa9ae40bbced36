"""
Brief: Tests for extdns.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from extdns.config.logging_config import (
    BracketLevelFormatter,
    SyslogFormatter,
    init_logging,
    resolve_level,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_init_logging_adds_single_stderr_handler():
    """
    Brief: init_logging installs one stderr handler even when called twice.

    Inputs:
      - cfg: minimal dict with level

    Outputs:
      - None: Asserts StreamHandler present and level applied
    """
    init_logging({"level": "debug"})
    init_logging({"level": "debug"})
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len([h for h in root.handlers if type(h) is logging.StreamHandler]) == 1
    assert logging.getLogger("urllib3").level == logging.DEBUG


def test_init_logging_quiets_http_client_loggers_at_info():
    """
    Brief: Library loggers are raised to WARNING unless debugging.

    Inputs:
      - None

    Outputs:
      - None
    """
    init_logging({"level": "info", "stderr": False})
    assert logging.getLogger().handlers == []
    assert logging.getLogger("botocore").level == logging.WARNING


def test_init_logging_file_handler_writes(tmp_path):
    """
    Brief: init_logging creates the log file (and parents) and writes entries.

    Inputs:
      - cfg: file path and level

    Outputs:
      - None: Asserts file created and contains the bracketed level
    """
    log_path = tmp_path / "logs" / "extdns.log"
    init_logging({"level": "info", "file": str(log_path), "stderr": False})
    logging.getLogger("extdns.test").info("file message")
    for h in logging.getLogger().handlers:
        h.flush()
    content = Path(log_path).read_text()
    assert "file message" in content
    assert "[info] extdns.test:" in content


def test_init_logging_syslog(monkeypatch):
    """
    Brief: init_logging attaches a syslog handler with the configured tag.

    Inputs:
      - syslog: True or dict

    Outputs:
      - None: Asserts dummy handler configured
    """
    created = {}

    class DummySysLogHandler(logging.Handler):
        LOG_USER = 1
        LOG_LOCAL0 = 16

        def __init__(self, address=None, facility=None):
            super().__init__()
            created["address"] = address
            created["facility"] = facility
            created["handler"] = self

        def emit(self, record):
            pass

    monkeypatch.setattr(logging.handlers, "SysLogHandler", DummySysLogHandler)
    init_logging({"syslog": True, "stderr": False})
    assert created["address"] == "/dev/log"
    assert created["facility"] == 1
    assert created["handler"].ident == "extdns: "
    assert isinstance(created["handler"].formatter, SyslogFormatter)

    init_logging({"syslog": {"address": ("localhost", 514), "facility": "local0", "tag": "edns"}})
    assert created["address"] == ("localhost", 514)
    assert created["facility"] == 16
    assert created["handler"].ident == "edns: "


def test_init_logging_syslog_failure_warns(monkeypatch):
    """
    Brief: init_logging logs a warning if syslog handler setup fails.

    Inputs:
      - monkeypatch: make SysLogHandler raise OSError

    Outputs:
      - None: Asserts warning emitted
    """

    class FailingSysLogHandler:
        LOG_USER = 1

        def __init__(self, *a, **kw):
            raise OSError("no syslog")

    monkeypatch.setattr(logging.handlers, "SysLogHandler", FailingSysLogHandler)
    caught = {}
    root = logging.getLogger()

    def fake_warning(msg, *args, **kwargs):
        caught["msg"] = msg % args if args else str(msg)

    monkeypatch.setattr(root, "warning", fake_warning)
    init_logging({"syslog": True})
    assert "Failed to configure syslog: no syslog" == caught["msg"]


def test_formatters_produce_expected_tags():
    """
    Brief: BracketLevelFormatter and SyslogFormatter include bracketed tags.

    Inputs:
      - LogRecord instances at different levels

    Outputs:
      - None: Asserts formatted strings contain expected tags
    """
    fmt = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s")
    rec = logging.LogRecord("n", logging.ERROR, __file__, 1, "m", (), None)
    rec.created = 0
    out = fmt.format(rec)
    assert out == "1970-01-01T00:00:00Z [error] n: m"

    s = SyslogFormatter()
    rec2 = logging.LogRecord("n2", logging.WARNING, __file__, 2, "m2", (), None)
    assert s.format(rec2) == "[warn] n2: m2"
    rec3 = logging.LogRecord("n3", 25, __file__, 3, "m3", (), None)
    assert s.format(rec3) == "[lvl25] n3: m3"


@pytest.mark.parametrize(
    "name,level",
    [("warn", logging.WARNING), ("CRIT", logging.CRITICAL), (None, logging.INFO), ("bogus", logging.INFO)],
)
def test_resolve_level(name, level):
    """
    Brief: resolve_level maps names case-insensitively, defaulting to INFO.

    Inputs:
      - name: level name

    Outputs:
      - None
    """
    assert resolve_level(name) == level
