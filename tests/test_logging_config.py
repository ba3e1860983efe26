import logging

import pytest

from interio.core import logging_config
from interio.core.logging_config import (
    ColoredFormatter, log_business_operation, log_database_operation, setup_logging,
)
from interio.core.paths import app_paths


@pytest.fixture
def isolated_logging(tmp_path, monkeypatch):
    monkeypatch.setattr(app_paths, "_base_dir", str(tmp_path))
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield tmp_path / "logs"
    audit = logging.getLogger(logging_config.BUSINESS_LOGGER)
    for handler in root.handlers + audit.handlers:
        handler.close()
    audit.handlers.clear()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_business_events_reach_the_audit_log(isolated_logging):
    setup_logging(log_level=logging.WARNING)

    log_business_operation("approve quotation", "Q-2026-000001", user_id=7)
    log_database_operation("insert", "rooms", 3, "Kitchen")
    for handler in logging.getLogger().handlers + logging.getLogger("business").handlers:
        handler.flush()

    audit = (isolated_logging / "audit.log").read_text(encoding="utf-8")
    debug = (isolated_logging / "debug.log").read_text(encoding="utf-8")
    assert "BUSINESS APPROVE QUOTATION (User: 7) - Q-2026-000001" in audit
    assert "DB INSERT" not in audit
    assert "DB INSERT: rooms (ID: 3) - Kitchen" in debug


def test_colored_formatter_leaves_record_untouched():
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)

    colored = ColoredFormatter("%(levelname)s %(message)s", use_color=True).format(record)
    plain = ColoredFormatter("%(levelname)s %(message)s", use_color=False).format(record)

    assert "\033[31m" in colored
    assert plain == "ERROR boom"
    assert record.levelname == "ERROR"
