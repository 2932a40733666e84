"""
Vault logging: a console logger that folds extras into the message text, a
filter stamping the request correlation id, and an optional handler shipping
JSON entries to an Azure Storage queue.

Extras carry ids, slugs, key names and timestamps. Never pass credential
values, tokens or webhook signatures.
"""

import logging
import os
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from azure.storage.queue import QueueClient, QueueServiceClient

from ..config import get_config
from ..constants import EnvironmentVariable, QueueName
from .json_utils import dumps

_vault_logger = None

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName", "correlation_id"}


def _as_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


class ContextAwareLogger:
    """
    Wraps a ``logging.Logger`` so that ``extra`` is also rendered as
    ``msg | key=value | ...``. Host runtimes that replace formatters still
    show the identifiers.
    """

    def __init__(self, logger):
        self.logger = logger

    def _log(self, method: str, msg, extra=None, exc_info=None):
        extra = extra or {}
        text = " | ".join([str(msg)] + [f"{k}={v}" for k, v in extra.items()])
        kwargs = {"extra": extra}
        if exc_info:
            kwargs["exc_info"] = exc_info
        getattr(self.logger, method)(text, **kwargs)

    def set_level(self, level):
        self.logger.setLevel(level)

    def debug(self, msg, **kwargs):
        self._log("debug", msg, **kwargs)

    def info(self, msg, **kwargs):
        self._log("info", msg, **kwargs)

    def warning(self, msg, **kwargs):
        self._log("warning", msg, **kwargs)

    def error(self, msg, **kwargs):
        self._log("error", msg, **kwargs)

    def exception(self, msg, **kwargs):
        self._log("exception", msg, **kwargs)


class CorrelationIdFilter(logging.Filter):
    """Copies the thread's correlation id, when there is one, onto each record."""

    def filter(self, record):
        from ..exceptions import get_correlation_id

        correlation_id = get_correlation_id()
        if correlation_id:
            record.correlation_id = correlation_id
        return True


class AzureQueueHandler(logging.Handler):
    """
    Buffers records as JSON entries and sends them to a storage queue once
    ``batch_size`` entries have accumulated (or on close).

    Without a connection string records are dropped.
    """

    def __init__(
        self,
        queue_name: str = QueueName.LOGS.value,
        connection_string: Optional[str] = None,
        batch_size: int = 10,
    ):
        super().__init__()
        self.queue_name = queue_name
        self.batch_size = batch_size
        self.log_buffer: List[Dict[str, Any]] = []
        self.connection_string = connection_string or os.getenv(
            EnvironmentVariable.AZURE_STORAGE_CONNECTION.value
        )

        if not self.connection_string:
            sys.stderr.write("Log queue disabled: no storage connection string\n")
            return
        try:
            self._create_queue_if_missing()
        except Exception as e:
            sys.stderr.write(f"Could not prepare log queue '{queue_name}': {e}\n")

    def _create_queue_if_missing(self) -> None:
        service = QueueServiceClient.from_connection_string(self.connection_string)
        existing = {queue.name for queue in service.list_queues()}
        if self.queue_name not in existing:
            service.create_queue(self.queue_name)

    def build_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Turn a record into the dict that is sent as the queue message."""
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            entry["correlation_id"] = correlation_id

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("__") and not callable(value)
        }
        if extras:
            entry["context"] = extras

        exc_type, exc_value, _ = record.exc_info or (None, None, None)
        if exc_type is not None:
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": [
                    line.rstrip() for line in traceback.format_exception(*record.exc_info)
                ],
            }
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        if not self.connection_string:
            return
        try:
            self.log_buffer.append(self.build_entry(record))
        except Exception:
            self.handleError(record)
            return
        if len(self.log_buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not (self.log_buffer and self.connection_string):
            return
        try:
            client = QueueClient.from_connection_string(
                conn_str=self.connection_string, queue_name=self.queue_name
            )
        except Exception as e:
            sys.stderr.write(
                f"Log queue client unavailable, dropping {len(self.log_buffer)} entries: {e}\n"
            )
            self.log_buffer.clear()
            return

        pending, self.log_buffer = self.log_buffer, []
        for entry in pending:
            try:
                client.send_message(dumps(entry))
            except Exception as e:
                sys.stderr.write(f"Dropped log entry: {e}\n")

    def close(self) -> None:
        self.flush()
        super().close()


def configure_logging(
    name: str,
    log_level: Optional[Union[int, str]] = None,
    enable_queue: Optional[bool] = None,
    queue_name: Optional[str] = None,
    queue_batch_size: int = 10,
    connection_string: Optional[str] = None,
) -> "ContextAwareLogger":
    """
    Set up ``credential_vault.<name>`` and make it the logger that
    ``get_logger`` hands out.

    Arguments left as None are taken from the application config. Calling
    this again for the same name replaces the previous handlers.
    """
    global _vault_logger

    settings = get_config()
    level = _as_level(log_level if log_level is not None else settings.logging.level)
    if enable_queue is None:
        enable_queue = settings.features.enable_logs_queue
    queue_name = queue_name or settings.queue.logs_queue_name
    if connection_string is None:
        connection_string = settings.queue.connection_string

    logger = logging.getLogger(f"credential_vault.{name}")
    logger.setLevel(level)
    for old in list(logger.handlers):
        logger.removeHandler(old)

    stamp = CorrelationIdFilter()
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(logging.Formatter("%(message)s"))
    if enable_queue:
        handlers.append(
            AzureQueueHandler(
                queue_name=queue_name,
                connection_string=connection_string,
                batch_size=queue_batch_size,
            )
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(stamp)
        logger.addHandler(handler)

    _vault_logger = ContextAwareLogger(logger)
    _vault_logger.info(
        "Vault logger configured",
        extra={"logger_name": name, "queue_logging": enable_queue},
    )
    return _vault_logger


def reset_logging() -> None:
    """Drop the configured logger; ``get_logger`` wraps the root logger again."""
    global _vault_logger
    _vault_logger = None


def get_logger(log_level: Optional[Union[int, str]] = None) -> "ContextAwareLogger":
    if _vault_logger is not None:
        return _vault_logger

    root = logging.getLogger()
    root.setLevel(_as_level(log_level if log_level is not None else get_config().logging.level))
    return ContextAwareLogger(root)
