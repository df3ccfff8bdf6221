"""
CoGateway Observability

Structured logging, tracing and the audit trail for the redeem message
life-cycle. Every registry operation runs inside a span, logs its outcome
with the message hash as context, and appends a hash-chained audit record.

    registry / ledger code
        log.info("msg", message_hash=x)      tracer.span("accept_redeem", ...)
                │                                       │
        GatewayLogger (layer, context)         Tracer (trace / span ids)
                │                                       │
        StructuredHandler: one JSON object per line, carrying the current
        correlation, trace and span ids from contextvars

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import logging
import sys
import threading
import time
import traceback
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
span_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("span_id", default="")
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")

ROOT_LOGGER_NAME = "cogateway"

# LogRecord attributes carried into the JSON line when set.
_RECORD_FIELDS = ("layer", "operation", "duration_ms", "error_code", "context")


class GatewayLayer(Enum):
    """Components, for log and span categorization."""
    LEDGER = "ledger"
    TOKEN = "token"
    HASHLOCK = "hashlock"
    REGISTRY = "registry"
    UNSTAKE = "unstake"
    ANCHOR = "anchor"
    ORGANIZATION = "organization"
    ASSERTIONS = "assertions"
    CONFIG = "config"
    CLI = "cli"


# =============================================================================
# TRACING
# =============================================================================

@dataclass
class Span:
    """
    One traced unit of work.

    Spans opened inside another span share its trace id and point at it
    through parent_span_id.
    """
    trace_id: str
    span_id: str
    parent_span_id: str = ""
    name: str = ""
    layer: str = ""
    start_time: float = field(default_factory=time.monotonic)
    end_time: Optional[float] = None
    status: str = "ok"
    attributes: Dict[str, Any] = field(default_factory=dict)

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    @property
    def duration_ms(self) -> float:
        return ((self.end_time or time.monotonic()) - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "name": self.name,
            "layer": self.layer,
            "duration_ms": round(self.duration_ms, 2),
            "status": self.status,
            "attributes": self.attributes,
        }


class Tracer:
    """Opens spans and hands finished ones to exporters."""

    def __init__(self, service_name: str = "cogateway"):
        self.service_name = service_name
        self._exporters: List[Callable[[Span], None]] = []

    def add_exporter(self, exporter: Callable[[Span], None]) -> None:
        self._exporters.append(exporter)

    @contextmanager
    def span(self, name: str, layer: GatewayLayer, **attributes: Any) -> Iterator[Span]:
        trace_id = trace_id_var.get() or uuid.uuid4().hex
        span = Span(
            trace_id=trace_id,
            span_id=uuid.uuid4().hex[:16],
            parent_span_id=span_id_var.get(),
            name=name,
            layer=layer.value,
            attributes=attributes,
        )
        trace_token = trace_id_var.set(trace_id)
        span_token = span_id_var.set(span.span_id)
        try:
            yield span
        except BaseException as e:
            span.status = "error"
            span.attributes["status_message"] = str(e)
            span.attributes["exception_type"] = type(e).__name__
            raise
        finally:
            span.end_time = time.monotonic()
            span_id_var.reset(span_token)
            trace_id_var.reset(trace_token)
            self._export(span)

    def _export(self, span: Span) -> None:
        for exporter in self._exporters:
            try:
                exporter(span)
            except Exception:
                logging.getLogger(ROOT_LOGGER_NAME).exception(
                    "span exporter failed for %s", span.name
                )


_tracer: Optional[Tracer] = None


def get_tracer() -> Tracer:
    """Process-wide tracer, used by gateways built without one."""
    global _tracer
    if _tracer is None:
        _tracer = Tracer()
    return _tracer


# =============================================================================
# LOGGING
# =============================================================================

class StructuredHandler(logging.Handler):
    """Logging handler that outputs one JSON object per line."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname.lower(),
                "logger": record.name,
                "message": record.getMessage(),
                "correlation_id": correlation_id_var.get(),
                "trace_id": trace_id_var.get(),
                "span_id": span_id_var.get(),
            }
            for name in _RECORD_FIELDS:
                line[name] = getattr(record, name, None)
            if record.exc_info:
                line["exception"] = "".join(traceback.format_exception(*record.exc_info))
            # Empty fields are left out of the line.
            line = {k: v for k, v in line.items() if v not in (None, "", {})}
            self.stream.write(json.dumps(line, default=str) + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(
    level: str = "info",
    fmt: str = "json",
    stream: Any = None,
) -> logging.Logger:
    """
    Install a single handler on the ``cogateway`` logger tree.

    Called by the CLI from configuration; library code only logs and never
    installs handlers on its own.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if fmt == "json":
        handler: logging.Handler = StructuredHandler(stream)
    else:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ))
    root.addHandler(handler)
    root.propagate = False
    return root


class GatewayLogger:
    """
    Structured logger for CoGateway components.

    Keyword arguments become the ``context`` of the log line; the layer is
    attached automatically.
    """

    def __init__(self, name: str, layer: GatewayLayer):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{layer.value}.{name}")

    def _log(self, level: int, message: str, operation: str = "", error_code: str = "",
             duration_ms: Optional[float] = None, **context: Any) -> None:
        self._logger.log(level, message, extra={
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "duration_ms": duration_ms,
            "context": context,
        })

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def rejected(self, operation: str, error: Exception, **context: Any) -> None:
        """Warning-level line whose error_code is the error kind."""
        kind = getattr(getattr(error, "kind", None), "value", type(error).__name__)
        self._log(
            logging.WARNING,
            f"Operation {operation} rejected: {error}",
            operation=operation,
            error_code=kind,
            **context,
        )

    def operation(self, name: str, duration_ms: float, **context: Any) -> None:
        self._log(
            logging.INFO,
            f"Operation {name} completed",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def get_logger(name: str, layer: GatewayLayer) -> GatewayLogger:
    return GatewayLogger(name, layer)


def generate_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    """Current correlation id; one is created for this context if unset."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


# =============================================================================
# AUDIT TRAIL
# =============================================================================

@dataclass
class AuditEvent:
    """One accepted or rejected registry operation."""
    event_id: str
    timestamp: str
    actor: str
    action: str
    message_hash: str
    outcome: str  # success, rejected
    correlation_id: str = ""
    previous_hash: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def digest(self) -> str:
        data = json.dumps(self.to_dict(), sort_keys=True, default=str)
        return hashlib.sha256(data.encode()).hexdigest()


class AuditLogger:
    """
    Append-only audit trail with hash chaining.

    Each record embeds the digest of its predecessor, so removing or editing
    a record breaks verify_chain().
    """

    GENESIS = "genesis"

    def __init__(self, logger: Optional[GatewayLogger] = None):
        self._logger = logger or get_logger("audit", GatewayLayer.REGISTRY)
        self._events: List[AuditEvent] = []
        self._last_hash: str = self.GENESIS
        self._lock = threading.Lock()

    def log(
        self,
        actor: str,
        action: str,
        message_hash: str,
        outcome: str,
        **details: Any,
    ) -> AuditEvent:
        with self._lock:
            event = AuditEvent(
                event_id=uuid.uuid4().hex,
                timestamp=datetime.now(timezone.utc).isoformat(),
                actor=actor,
                action=action,
                message_hash=message_hash,
                outcome=outcome,
                correlation_id=get_correlation_id(),
                previous_hash=self._last_hash,
                details={k: str(v) for k, v in details.items()},
            )
            self._last_hash = event.digest()
            self._events.append(event)

        self._logger.debug(
            f"audit: {action} on {message_hash} -> {outcome}",
            operation="audit",
            actor=actor,
            event_hash=self._last_hash,
        )
        return event

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def verify_chain(self) -> bool:
        """Recompute the hash chain from genesis."""
        with self._lock:
            previous = self.GENESIS
            for event in self._events:
                if event.previous_hash != previous:
                    return False
                previous = event.digest()
            return previous == self._last_hash
