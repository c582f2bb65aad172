import json
import logging

import pytest
import structlog

from subsku.logging import configure_logging


@pytest.fixture
def restore_logging():
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def test_json_lines_carry_bound_webhook_context(restore_logging, capsys: pytest.CaptureFixture[str]):
    configure_logging(json_output=True, level="info")
    structlog.contextvars.bind_contextvars(topic="orders/create", webhook_id="wh-1")

    structlog.get_logger("subsku.test").info("Reserved sub-units", sku="ABC", count=2)

    line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert line["event"] == "Reserved sub-units"
    assert line["topic"] == "orders/create"
    assert line["webhook_id"] == "wh-1"
    assert line["sku"] == "ABC"
    assert line["level"] == "info"


def test_level_filters_lower_records(restore_logging, capsys: pytest.CaptureFixture[str]):
    configure_logging(json_output=True, level="warning")

    structlog.get_logger("subsku.test").info("hidden")
    structlog.get_logger("subsku.test").warning("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out
