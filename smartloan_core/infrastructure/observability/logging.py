"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pythonjsonlogger import jsonlogger

from smartloan_core.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_validation(
    request_id: str,
    eligible: bool,
    failed_rules: List[str],
    warning_rules: List[str],
    overall_confidence: float,
    duration_ms: float,
) -> None:
    """Log structured validation outcome for analysis"""
    logging.info(
        "Validation completed",
        extra={
            "request_id": request_id,
            "step": "validation_complete",
            "eligible": eligible,
            "failed_rules": failed_rules,
            "warning_rules": warning_rules,
            "overall_confidence": overall_confidence,
            "duration_ms": duration_ms,
        },
    )


def log_offer(
    request_id: str,
    offered: bool,
    recommended_amount: Optional[float],
    term_months: Optional[int],
    duration_ms: float,
) -> None:
    """Log structured offer outcome; amounts only, never document contents"""
    logging.info(
        "Offer completed",
        extra={
            "request_id": request_id,
            "step": "offer_complete",
            "offer_outcome": "generated" if offered else "declined",
            "recommended_amount": recommended_amount,
            "term_months": term_months,
            "duration_ms": duration_ms,
        },
    )
