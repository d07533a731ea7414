"""
Logging configuration for Context Key.

Provides structured JSON logging and an audit logger for key lifecycle
events. Audit records carry identifiers and outcomes only, never passwords,
private keys, derived keys, or ciphertext.
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Context variable for correlating the log lines of one seal/open operation
operation_id_var: ContextVar[str] = ContextVar('operation_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        operation_id = operation_id_var.get()
        if operation_id:
            log_data["operation_id"] = operation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for Context Key audit events.

    Records key generation, signing, sealing and opening outcomes.
    """

    def __init__(self, name: str = "contextkey.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "operation_id": operation_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def key_generated(self, key_fingerprint: str) -> None:
        """Log creation of a signing key pair."""
        self._log(
            logging.INFO,
            "KEY_GENERATED",
            key_fingerprint=key_fingerprint,
            message=f"Signing key generated ({key_fingerprint})"
        )

    def envelope_signed(self, record_id: str, key_fingerprint: str) -> None:
        """Log a record being signed."""
        self._log(
            logging.INFO,
            "ENVELOPE_SIGNED",
            record_id=record_id,
            key_fingerprint=key_fingerprint,
            message=f"Record {record_id} signed"
        )

    def blob_sealed(self, record_id: str, kdf_algorithm: str) -> None:
        """Log a successful seal."""
        self._log(
            logging.INFO,
            "BLOB_SEALED",
            record_id=record_id,
            kdf_algorithm=kdf_algorithm,
            message=f"Record {record_id} sealed with {kdf_algorithm}"
        )

    def blob_opened(
        self,
        outcome: str,
        record_id: Optional[str] = None,
        key_fingerprint: Optional[str] = None
    ) -> None:
        """Log the outcome of an open attempt."""
        level = logging.INFO if outcome == "VERIFIED" else logging.WARNING
        self._log(
            level,
            "BLOB_OPENED",
            outcome=outcome,
            record_id=record_id,
            key_fingerprint=key_fingerprint,
            message=f"Open outcome: {outcome}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for an application embedding Context Key.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stderr keeps stdout free for CLI output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_operation_id(operation_id: Optional[str] = None) -> str:
    """
    Set the operation ID for the current context.

    Args:
        operation_id: ID to set, or None to generate one

    Returns:
        The operation ID that was set
    """
    if operation_id is None:
        operation_id = str(uuid.uuid4())
    operation_id_var.set(operation_id)
    return operation_id


def get_operation_id() -> str:
    """Get the current operation ID."""
    return operation_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()


@contextmanager
def operation_context(operation_id: Optional[str] = None) -> Iterator[str]:
    """Scope an operation ID to a block, restoring the previous one on exit."""
    token = operation_id_var.set(operation_id or str(uuid.uuid4()))
    try:
        yield operation_id_var.get()
    finally:
        operation_id_var.reset(token)
