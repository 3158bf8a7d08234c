"""
Log formatter tests.
"""

import json
import logging

from dtplanner.middleware.logging_config import JSONFormatter, ReadableFormatter


def _record(msg="Section decision recorded", **extra) -> logging.LogRecord:
    record = logging.LogRecord("dtplanner.services", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_carries_engine_ids():
    line = JSONFormatter().format(
        _record(project_id=1, section_approval_id=7, decision="approved", unrelated="x"),
    )
    entry = json.loads(line)
    assert entry["message"] == "Section decision recorded"
    assert entry["level"] == "INFO"
    assert entry["project_id"] == 1
    assert entry["section_approval_id"] == 7
    assert entry["decision"] == "approved"
    assert "unrelated" not in entry
    assert "workflow_id" not in entry


def test_readable_formatter_appends_scope_and_duration():
    line = ReadableFormatter().format(_record(project_id=1, workflow_id=4, duration_ms=12.4))
    assert "Section decision recorded (project=1 workflow=4) [12ms]" in line


def test_readable_formatter_without_extras():
    line = ReadableFormatter().format(_record())
    assert line.endswith("dtplanner.services: Section decision recorded")
