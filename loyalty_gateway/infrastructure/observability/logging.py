"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict

from pythonjsonlogger.json import JsonFormatter

from loyalty_gateway.utils.date_utils import utcnow


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args: Any, service_name: str = "loyalty-gateway", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "loyalty-gateway") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_order_event(step: str, order_number: str, owner_id: Any = None, **fields: Any) -> None:
    """Log an order lifecycle step with its identifiers"""
    extra = {"step": step, "order_number": order_number}
    if owner_id is not None:
        extra["owner_id"] = str(owner_id)
    extra.update(fields)
    logging.getLogger("loyalty_gateway.orders").info(step.replace("_", " ").capitalize(), extra=extra)
