"""
CoGateway Event Infrastructure

Typed events emitted by the ledger and the redeem registry, a synchronous
event bus, and an append-only event log that verification harnesses read
back like transaction receipts.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │  Ledger transaction ──queue──▶ commit ──publish──▶ EventBus         │
    │                                                    │                │
    │                                     ┌──────────────┼─────────────┐  │
    │                                     ▼              ▼             ▼  │
    │                                 EventLog      subscribers    capture│
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Events queued inside a ledger transaction are published only when the
transaction commits, so a rejected operation never leaves an event behind.

Wire format
───────────

    to_wire() returns the event's compatibility surface: the field names an
    external auditor decodes. Renaming or dropping a wire field is a
    breaking change.

Usage
─────

    log = EventLog()
    log.attach(ledger.event_bus)

    with log.capture() as captured:
        cogateway.request_redeem(...)

    decoded = decode_events(captured)
    decoded["RedeemRequested"].amount

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Set,
    Type,
    Union,
)

from gateway.core import canonical_json_bytes

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════════
# EVENT BASE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """
    Base class for all events.

    Events are immutable facts. Metadata fields are auto-populated; domain
    fields are declared by subclasses and listed in WIRE_FIELDS as
    (attribute, wire name) pairs.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    correlation_id: Optional[str] = None

    WIRE_FIELDS = ()

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        return data

    def to_wire(self) -> Dict[str, Any]:
        """Compatibility surface: wire names only, no metadata."""
        return {wire: getattr(self, attr) for attr, wire in self.WIRE_FIELDS}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, sort_keys=True)

    def digest(self) -> str:
        """Digest of the wire content (metadata excluded)."""
        payload = {"event": self.event_type, **self.to_wire()}
        return hashlib.sha256(canonical_json_bytes(payload)).hexdigest()


# ════════════════════════════════════════════════════════════════════════════
# DOMAIN EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Transfer(Event):
    """Emitted for every ledger balance movement, mint and burn."""
    from_account: str = ""
    to_account: str = ""
    amount: int = 0
    asset_kind: str = ""

    WIRE_FIELDS = (
        ("from_account", "from"),
        ("to_account", "to"),
        ("amount", "amount"),
        ("asset_kind", "assetKind"),
    )


@dataclass
class RedeemRequested(Event):
    """Emitted when a redeemer registers a redeem request."""
    redeemer: str = ""
    nonce: int = 0
    beneficiary: str = ""
    amount: int = 0
    gas_price: int = 0
    gas_limit: int = 0
    message_hash: str = ""

    WIRE_FIELDS = (
        ("redeemer", "redeemer"),
        ("nonce", "nonce"),
        ("beneficiary", "beneficiary"),
        ("amount", "amount"),
        ("gas_price", "gasPrice"),
        ("gas_limit", "gasLimit"),
        ("message_hash", "messageHash"),
    )


@dataclass
class RedeemIntentDeclared(Event):
    """Emitted when a facilitator accepts a request and declares the intent."""
    redeemer: str = ""
    nonce: int = 0
    beneficiary: str = ""
    amount: int = 0
    message_hash: str = ""

    WIRE_FIELDS = (
        ("redeemer", "redeemer"),
        ("nonce", "nonce"),
        ("beneficiary", "beneficiary"),
        ("amount", "amount"),
        ("message_hash", "messageHash"),
    )


@dataclass
class RedeemProgressed(Event):
    """Emitted when the unlock secret completes a declared redeem."""
    redeemer: str = ""
    nonce: int = 0
    amount: int = 0
    unlock_secret: Union[str, bytes] = ""
    message_hash: str = ""

    WIRE_FIELDS = (
        ("redeemer", "redeemer"),
        ("nonce", "nonce"),
        ("amount", "amount"),
        ("unlock_secret", "unlockSecret"),
        ("message_hash", "messageHash"),
    )


@dataclass
class RedeemReverted(Event):
    """Emitted when a timed-out declared redeem is rolled back."""
    redeemer: str = ""
    nonce: int = 0
    amount: int = 0
    bounty: int = 0
    message_hash: str = ""

    WIRE_FIELDS = (
        ("redeemer", "redeemer"),
        ("nonce", "nonce"),
        ("amount", "amount"),
        ("bounty", "bounty"),
        ("message_hash", "messageHash"),
    )


@dataclass
class StakeReleased(Event):
    """Emitted by the unstake side when stake leaves the vault."""
    beneficiary: str = ""
    amount: int = 0
    burned: bool = False

    WIRE_FIELDS = (
        ("beneficiary", "beneficiary"),
        ("amount", "amount"),
        ("burned", "burned"),
    )


EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.__name__: cls
    for cls in (
        Transfer,
        RedeemRequested,
        RedeemIntentDeclared,
        RedeemProgressed,
        RedeemReverted,
        StakeReleased,
    )
}


# ════════════════════════════════════════════════════════════════════════════
# EVENT BUS
# ════════════════════════════════════════════════════════════════════════════


EventHandler = Callable[[Event], None]


@dataclass
class EventHandlerRegistration:
    handler: EventHandler
    event_types: Set[Type[Event]]
    priority: int = 0


class EventBus:
    """
    Synchronous in-memory pub/sub.

    Handlers run in priority order (higher first). A failing handler is
    logged and counted; it never fails the publishing operation, which has
    already committed.

    Example:
        bus = EventBus()

        @bus.subscribe(RedeemRequested)
        def on_request(event):
            ...
    """

    def __init__(self):
        self._handlers: List[EventHandlerRegistration] = []
        self._lock = threading.RLock()
        self._published_count = 0
        self._error_count = 0

    def subscribe(
        self,
        *event_types: Type[Event],
        priority: int = 0,
    ) -> Callable[[EventHandler], EventHandler]:
        """Decorator to subscribe a handler to event types (all events if none)."""
        def decorator(handler: EventHandler) -> EventHandler:
            registration = EventHandlerRegistration(
                handler=handler,
                event_types=set(event_types) if event_types else {Event},
                priority=priority,
            )
            with self._lock:
                self._handlers.append(registration)
                self._handlers.sort(key=lambda r: -r.priority)
            return handler
        return decorator

    def unsubscribe(self, handler: EventHandler) -> bool:
        with self._lock:
            original_len = len(self._handlers)
            self._handlers = [r for r in self._handlers if r.handler != handler]
            return len(self._handlers) < original_len

    def publish(self, event: Event) -> None:
        with self._lock:
            self._published_count += 1
            handlers = [
                r.handler for r in self._handlers
                if any(isinstance(event, t) for t in r.event_types)
            ]

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                with self._lock:
                    self._error_count += 1
                logger.exception(
                    "event handler %s failed for %s",
                    getattr(handler, "__name__", repr(handler)),
                    event.event_type,
                )

    @property
    def metrics(self) -> Dict[str, int]:
        with self._lock:
            return {
                "published_count": self._published_count,
                "error_count": self._error_count,
                "handler_count": len(self._handlers),
            }


# ════════════════════════════════════════════════════════════════════════════
# EVENT LOG
# ════════════════════════════════════════════════════════════════════════════


class EventLog:
    """
    Append-only record of every published event.

    capture() collects the events published while its block runs, which is
    how a harness reads the "receipt" of a single operation.
    """

    def __init__(self):
        self._events: List[Event] = []
        self._captures: List[List[Event]] = []
        self._lock = threading.RLock()

    def attach(self, bus: EventBus) -> "EventLog":
        bus.subscribe(priority=100)(self.append)
        return self

    def append(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)
            for captured in self._captures:
                captured.append(event)

    @contextmanager
    def capture(self) -> Iterator[List[Event]]:
        captured: List[Event] = []
        with self._lock:
            self._captures.append(captured)
        try:
            yield captured
        finally:
            with self._lock:
                self._captures.remove(captured)

    def events(self, event_type: Optional[Type[Event]] = None) -> List[Event]:
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [e for e in self._events if isinstance(e, event_type)]

    def for_message(self, message_hash: str) -> List[Event]:
        """All registry events carrying the given message hash, in order."""
        with self._lock:
            return [
                e for e in self._events
                if getattr(e, "message_hash", None) == message_hash
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def decode_events(events: List[Event]) -> Dict[str, Event]:
    """
    Index events by type name, like a receipt decoder.

    When an event type occurs more than once the last occurrence wins; use
    events_named() to get every occurrence.
    """
    decoded: Dict[str, Event] = {}
    for event in events:
        decoded[event.event_type] = event
    return decoded


def events_named(events: List[Event], name: str) -> List[Event]:
    return [e for e in events if e.event_type == name]
