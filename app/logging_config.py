"""
Structured JSON logging configuration with correlation IDs.
Every line carries the notification request id and the dispatch invocation id
so one broadcast can be traced from trigger to terminal status.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextvars import ContextVar
from pythonjsonlogger import jsonlogger

# Context variables for correlation IDs
_request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
_invocation_id: ContextVar[Optional[str]] = ContextVar('invocation_id', default=None)


def set_context(
    request_id: Optional[str] = None,
    invocation_id: Optional[str] = None
) -> None:
    """Set correlation context variables"""
    if request_id:
        _request_id.set(request_id)
    if invocation_id:
        _invocation_id.set(invocation_id)


def clear_context() -> None:
    """Clear all context variables"""
    _request_id.set(None)
    _invocation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Add correlation IDs to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        record.invocation_id = _invocation_id.get() or "-"
        return True


class JsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with correlation IDs and UTC timestamps"""

    def __init__(self, *args, service_name: str = "broadcast-dispatch-service", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['request_id'] = getattr(record, 'request_id', '-')
        log_record['invocation_id'] = getattr(record, 'invocation_id', '-')
        log_record['service'] = self.service_name
        log_record['level'] = record.levelname
        log_record.pop('asctime', None)


def configure_logging(log_level: str = "INFO", service_name: str = "broadcast-dispatch-service") -> None:
    """Configure structured JSON logging on stdout"""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter('%(message)s %(levelname)s %(name)s', service_name=service_name))
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    logging.getLogger('app').setLevel(log_level)

    # Suppress verbose libraries
    logging.getLogger('google').setLevel(logging.WARNING)
    logging.getLogger('grpc').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger instance with context support"""
    return logging.getLogger(name)
