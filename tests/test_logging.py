"""
Logging configuration tests.
"""
from __future__ import annotations

import json
import logging

import pytest

from kanban.core.logging import JsonFormatter, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter_emits_one_object() -> None:
    record = logging.LogRecord(
        "kanban.services.task_service", logging.WARNING, __file__, 1, "failed %s", ("x",), None
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "kanban.services.task_service"
    assert payload["message"] == "failed x"


def test_setup_logging_installs_single_handler() -> None:
    setup_logging(level="DEBUG", json_format=True)

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("kanban").level == logging.DEBUG
