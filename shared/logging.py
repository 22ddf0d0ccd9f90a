"""
Shared logging configuration for the Elections Access Layer.

Every log line is a JSON object. Request-scoped fields (request id,
resolved client address, claimed identity) are bound with
``structlog.contextvars`` by the HTTP middleware and the submission gate,
so components deeper in the call stack log them without passing them
around.
"""

import logging
import sys
import uuid
from typing import Any, Dict, List, Optional

import structlog
from opentelemetry import trace

Processor = Any


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    structlog.configure(
        processors=_processors(service_name),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def _processors(service_name: str) -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        service_context(service_name),
        add_trace_context,
        structlog.processors.JSONRenderer(),
    ]


def service_context(service_name: str) -> Processor:
    """Build a processor that tags events with the owning service and component."""

    def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        # "elections.gate" -> component "gate"
        _, _, component = event_dict.get("logger", "").partition(".")
        if component:
            event_dict.setdefault("component", component)
        return event_dict

    return add_service_context


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the active OpenTelemetry span, if any."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id for the current request, generating one if absent."""
    request_id = request_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def set_client_context(client_ip: Optional[str] = None, identity_name: Optional[str] = None):
    """Bind the resolved client address and claimed identity."""
    fields = {}
    if client_ip:
        fields["client_ip"] = client_ip
    if identity_name:
        fields["identity_name"] = identity_name
    if fields:
        structlog.contextvars.bind_contextvars(**fields)


def clear_context():
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
