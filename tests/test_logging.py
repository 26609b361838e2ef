from __future__ import annotations

import logging
import os

from utils.logger import StructuredFormatter


def test_formatter_appends_extra_fields() -> None:
    record = logging.makeLogRecord({"msg": "Complaint submitted", "levelname": "INFO", "reference": "CMP-1-001"})
    line = StructuredFormatter("%(message)s").format(record)
    assert line == "Complaint submitted | reference='CMP-1-001'"


def test_formatter_leaves_plain_records_alone() -> None:
    record = logging.makeLogRecord({"msg": "plain"})
    assert StructuredFormatter("%(message)s").format(record) == "plain"


def test_app_logger_writes_rotating_file(app) -> None:
    app.logger.warning("Disk almost full", extra={"free_mb": 12})
    for handler in app.logger.handlers:
        handler.flush()
    with open(os.path.join(app.config["LOG_DIR"], "crm.log"), encoding="utf-8") as fh:
        assert "Disk almost full | free_mb=12" in fh.read()
