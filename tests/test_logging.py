"""Tests for logging setup and the audit trail."""

import json
import logging
from decimal import Decimal

import pytest

from quote_engine.logging_config import AUDIT_LOGGER_NAME, audit, setup_logging
from quote_engine.quotes.states import AdminStatus


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    saved = (list(root.handlers), root.level, list(audit_logger.handlers))
    yield
    for handler in root.handlers + audit_logger.handlers:
        if handler not in saved[0] and handler not in saved[2]:
            handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    audit_logger.handlers[:] = saved[2]


def test_audit_records_are_json(tmp_path, restore_logging):
    setup_logging(tmp_path)

    audit(
        "QUOTE_APPROVAL_PROCESSED",
        quote_id=7,
        decision=AdminStatus.APPROVED,
        commission_amount=Decimal("3000.00"),
        contractor_ids=["c-1", "c-2"],
        rejection_reason=None,
    )
    for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
        handler.flush()

    lines = (tmp_path / "logs" / "audit.log").read_text().splitlines()
    record = json.loads(lines[-1])

    assert record["audit_event"] == "QUOTE_APPROVAL_PROCESSED"
    assert record["message"] == "QUOTE_APPROVAL_PROCESSED"
    assert record["quote_id"] == 7
    assert record["decision"] == "approved"
    assert record["commission_amount"] == "3000.00"
    assert record["contractor_ids"] == ["c-1", "c-2"]
    assert record["rejection_reason"] is None
    assert record["logger"] == AUDIT_LOGGER_NAME


def test_errors_go_to_error_log(tmp_path, restore_logging):
    setup_logging(tmp_path)

    logging.getLogger("quote_engine.test").error("wallet unreachable")
    for handler in logging.getLogger().handlers:
        handler.flush()

    errors = (tmp_path / "logs" / "error.log").read_text()
    assert "wallet unreachable" in errors
