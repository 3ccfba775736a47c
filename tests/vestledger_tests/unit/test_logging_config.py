"""
Tests for structured JSON logging setup.
"""

import json
import logging

import pytest

from vestledger.core.config import LoggingConfig
from vestledger.core.logging_config import (
    LedgerJsonFormatter,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture
def restore_logger():
    """Put the named logger back the way the test found it."""
    saved = {}

    def _save(name):
        target = logging.getLogger(name)
        saved[name] = (target.level, list(target.handlers))
        return target

    yield _save

    for name, (level, handlers) in saved.items():
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            target.removeHandler(handler)
            handler.close()
        for handler in handlers:
            target.addHandler(handler)
        target.setLevel(level)


def _format(formatter, message="Tokens withdrawn", **extra):
    record = logging.LogRecord(
        name="vestledger.core.contracts.vesting",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    record.created = 1_700_000_000.0
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


class TestLedgerJsonFormatter:
    def test_adds_context_fields(self):
        formatter = LedgerJsonFormatter(environment="testnet")
        payload = _format(formatter, event="vesting.withdrawal", amount=100)

        assert payload["message"] == "Tokens withdrawn"
        assert payload["level"] == "info"
        assert payload["environment"] == "testnet"
        assert payload["service"] == "vestledger"
        assert payload["event"] == "vesting.withdrawal"
        assert payload["amount"] == 100
        assert payload["source"].endswith(":10")

    def test_timestamp_is_record_creation_time(self):
        payload = _format(LedgerJsonFormatter())
        assert payload["timestamp"] == "2023-11-14T22:13:20Z"

    def test_untagged_records_get_default_event(self):
        payload = _format(LedgerJsonFormatter())
        assert payload["event"] == "log"

    def test_big_integer_amounts_stay_exact(self):
        amount = 1000 * 10**18 + 1
        payload = _format(LedgerJsonFormatter(), amount=amount)
        assert payload["amount"] == amount


class TestSetupLogging:
    def test_writes_json_file(self, tmp_path, restore_logger):
        restore_logger("vestledger.test_file")
        log_file = tmp_path / "logs" / "ledger.json"
        target = setup_logging(
            name="vestledger.test_file",
            log_file=str(log_file),
            level="DEBUG",
            enable_console=False,
        )
        target.info("Investors added", extra={"event": "vesting.allocations_added", "count": 3})
        for handler in target.handlers:
            handler.flush()

        payload = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert payload["count"] == 3
        assert payload["event"] == "vesting.allocations_added"
        assert payload["service"] == "vestledger"

    def test_reconfiguring_replaces_handlers(self, restore_logger):
        restore_logger("vestledger.test_replace")
        setup_logging(name="vestledger.test_replace", enable_console=True)
        target = setup_logging(name="vestledger.test_replace", enable_console=True)
        assert len(target.handlers) == 1

    def test_from_config_uses_level(self, restore_logger):
        restore_logger("vestledger.test_config")
        target = setup_logging_from_config(
            LoggingConfig(level="WARNING", enable_console=False), name="vestledger.test_config"
        )
        assert target.level == logging.WARNING
        assert target.handlers == []

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            setup_logging_from_config(LoggingConfig(level="LOUD"), name="vestledger.test_invalid")
