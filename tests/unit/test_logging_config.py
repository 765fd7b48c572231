"""Unit tests for logging configuration."""

import json
import logging
import os
import time

from copyhelper.logging_config import (
    DevelopmentFormatter,
    RetentionFileHandler,
    StructuredJsonFormatter,
    get_job_id,
    get_logger,
    job_scope,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("copyhelper.test", logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJobScope:
    def test_sets_and_resets_job_id(self):
        assert get_job_id() == ""
        with job_scope("abc123") as job:
            assert job == "abc123"
            assert get_job_id() == "abc123"
        assert get_job_id() == ""

    def test_generates_id_when_none_given(self):
        with job_scope() as job:
            assert len(job) == 12


class TestFormatters:
    def test_json_formatter_fields(self):
        with job_scope("job1"):
            entry = json.loads(StructuredJsonFormatter().format(_record(data={"pages": 3})))
        assert entry["level"] == "warn"
        assert entry["context"] == "copyhelper.test"
        assert entry["jobId"] == "job1"
        assert entry["message"] == "hello"
        assert entry["data"] == {"pages": 3}

    def test_json_formatter_without_job(self):
        entry = json.loads(StructuredJsonFormatter().format(_record()))
        assert entry["jobId"] is None
        assert "data" not in entry

    def test_development_formatter_includes_job(self):
        with job_scope("job2"):
            line = DevelopmentFormatter().format(_record())
        assert "[job2]" in line
        assert line.endswith("hello")


class TestGetLogger:
    def test_names_are_children_of_root(self):
        assert get_logger("some.module").name == "copyhelper.some.module"
        assert get_logger("copyhelper.capture").name == "copyhelper.capture"


class TestRetentionFileHandler:
    def test_stale_log_is_truncated(self, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        log_file = log_dir / "copyhelper.log"
        log_file.write_text("old line\n")
        old = time.time() - 72 * 3600
        os.utime(log_file, (old, old))

        handler = RetentionFileHandler(log_dir, retention_hours=48)
        handler.close()
        assert log_file.read_text() == ""

    def test_fresh_log_is_kept(self, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        (log_dir / "copyhelper.log").write_text("recent\n")
        handler = RetentionFileHandler(log_dir, retention_hours=48)
        handler.close()
        assert (log_dir / "copyhelper.log").read_text() == "recent\n"
