"""
VestLedger - Structured Logging Configuration

Every ledger operation logs with an ``event`` extra (``vesting.withdrawal``,
``vesting.rejected``, ``token.transfer`` ...). Configuring the package
logger renders those records as one JSON object per line, stamped with the
deployment environment, on stdout and/or a rotating file.

Usage:
    from vestledger.core.config import load_config
    from vestledger.core.logging_config import setup_logging_from_config

    setup_logging_from_config(load_config("testnet").logging)
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pythonjsonlogger import jsonlogger

from .config import LoggingConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


class LedgerJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for ledger records.

    ``timestamp`` is the moment the record was created (UTC, ``Z`` suffix);
    records logged without an ``event`` extra are tagged ``"log"``.
    """

    def __init__(self, environment: str = "development", service_name: str = "vestledger"):
        super().__init__(fmt=LOG_FORMAT)
        self.environment = environment
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        created = datetime.fromtimestamp(record.created, timezone.utc)
        log_record["timestamp"] = created.isoformat().replace("+00:00", "Z")
        log_record["level"] = record.levelname.lower()
        log_record["environment"] = self.environment
        log_record["service"] = self.service_name
        log_record.setdefault("event", "log")
        log_record["source"] = f"{record.module}.{record.funcName}:{record.lineno}"


def setup_logging_from_config(
    config: LoggingConfig,
    name: str = "vestledger",
    max_bytes: int = 100 * 1024 * 1024,  # 100MB
    backup_count: int = 10,
) -> logging.Logger:
    """
    Attach JSON handlers described by ``config`` to the ``name`` logger.

    Existing handlers on that logger are closed and replaced, so calling
    this again reconfigures rather than duplicates output.

    Raises:
        ValueError: If ``config`` fails validation
    """
    config.validate()
    level = getattr(logging, config.level.upper())

    target = logging.getLogger(name)
    target.setLevel(level)
    for handler in list(target.handlers):
        target.removeHandler(handler)
        handler.close()

    formatter = LedgerJsonFormatter(
        environment=config.environment,
        service_name=name.split(".")[0],
    )
    for handler in _build_handlers(config, max_bytes, backup_count):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        target.addHandler(handler)

    return target


def _build_handlers(
    config: LoggingConfig, max_bytes: int, backup_count: int
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if config.enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if config.log_file:
        try:
            log_path = Path(config.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    filename=log_path,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                )
            )
        except OSError as e:
            logger.warning(f"Could not create file handler for {config.log_file}: {e}")

    return handlers


def setup_logging(
    name: str = "vestledger",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "development",
    enable_console: bool = True,
) -> logging.Logger:
    """Keyword form of ``setup_logging_from_config``."""
    return setup_logging_from_config(
        LoggingConfig(
            level=level,
            log_file=log_file,
            environment=environment,
            enable_console=enable_console,
        ),
        name=name,
    )
