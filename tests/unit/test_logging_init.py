from __future__ import annotations

import json
import logging
from io import StringIO
from pathlib import Path

import pytest

from lead_importer.logging.error_log import ErrorLogBuffer
from lead_importer.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)
from lead_importer.models.error_record import ErrorRecord


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent_and_switches_debug():
    first = setup_logging()
    second = setup_logging(debug=True)
    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG
    assert get_logger() is first


def test_labeled_prefixes():
    captured = StringIO()
    logger = logging.getLogger("test_lead_importer_labels")
    logger.setLevel(logging.INFO)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    handler = logging.StreamHandler(captured)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(SUMMARY_LEVEL, "rows=1")

    lines = captured.getvalue().strip().split("\n")
    assert lines == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY rows=1",
    ]


def test_log_summary_goes_to_stdout(capsys):
    setup_logging()
    log_summary("rows=3 inserted=3")
    assert "SUMMARY rows=3 inserted=3" in capsys.readouterr().out


def test_error_record_json_line_keys():
    rec = ErrorRecord.create(file="leads.csv", row=4, error_type="DATABASE_INSERT_ERROR", message="duplicate key")
    data = json.loads(rec.to_json_line())
    assert set(data) == {"timestamp", "file", "row", "error_type", "message"}
    assert data["timestamp"].endswith("Z")
    assert data["row"] == 4


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("leads.csv", 2, "DATABASE_INSERT_ERROR", "dup"))
    buf.extend([ErrorRecord.create("leads.csv", -1, "IMPORT_CANCELLED", "stopped")])
    path = buf.flush()
    assert path.parent == Path("logs")
    assert path.name.startswith("import-errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes_append(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "nested")
    buf.append(ErrorRecord.create("f.csv", 1, "X", "a"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("f.csv", 2, "X", "b"))
    assert buf.flush() == path
    assert path.stat().st_size > size1


def test_empty_flush_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()
