"""Tests for structured logging, spans and the audit chain."""
import io
import json
import logging

import pytest

from gateway.cogateway.errors import InvalidNonce
from gateway.cogateway.observability import (
    AuditLogger,
    GatewayLayer,
    Tracer,
    configure_logging,
    correlation_id_var,
    get_logger,
    set_correlation_id,
)

from tests.conftest import BENEFICIARY, HASH_LOCK, REDEEMER


@pytest.fixture
def log_stream():
    stream = io.StringIO()
    configure_logging("debug", "json", stream)
    yield stream
    root = logging.getLogger("cogateway")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


def _records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


def test_json_log_lines_carry_layer_and_context(log_stream):
    token = set_correlation_id("corr-test")
    try:
        get_logger("unit", GatewayLayer.LEDGER).info("hello", account="0xabc")
    finally:
        correlation_id_var.reset(token)
    record = _records(log_stream)[-1]
    assert record["message"] == "hello"
    assert record["level"] == "info"
    assert record["layer"] == "ledger"
    assert record["correlation_id"] == "corr-test"
    assert record["context"] == {"account": "0xabc"}


def test_rejections_logged_with_error_kind(log_stream, gateway, funded):
    with pytest.raises(InvalidNonce):
        gateway.request_redeem(REDEEMER, 1, 0, 0, 9, BENEFICIARY, HASH_LOCK)
    rejected = [r for r in _records(log_stream) if r.get("error_code") == "InvalidNonce"]
    assert len(rejected) == 1
    assert rejected[0]["level"] == "warning"
    assert rejected[0]["operation"] == "request_redeem"


def test_text_format():
    stream = io.StringIO()
    configure_logging("info", "text", stream)
    try:
        get_logger("unit", GatewayLayer.CLI).info("plain")
        assert "plain" in stream.getvalue()
        assert not stream.getvalue().startswith("{")
    finally:
        root = logging.getLogger("cogateway")
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.propagate = True


def test_spans_nest_and_export():
    tracer = Tracer()
    finished = []
    tracer.add_exporter(finished.append)
    with tracer.span("outer", GatewayLayer.REGISTRY) as outer:
        with tracer.span("inner", GatewayLayer.LEDGER) as inner:
            pass
    assert [s.name for s in finished] == ["inner", "outer"]
    assert inner.parent_span_id == outer.span_id
    assert inner.trace_id == outer.trace_id


def test_span_records_error():
    tracer = Tracer()
    with pytest.raises(RuntimeError):
        with tracer.span("failing", GatewayLayer.REGISTRY) as span:
            raise RuntimeError("boom")
    assert span.status == "error"
    assert span.attributes["exception_type"] == "RuntimeError"


def test_broken_exporter_does_not_fail_operation():
    tracer = Tracer()
    tracer.add_exporter(lambda span: 1 / 0)
    with tracer.span("ok", GatewayLayer.REGISTRY):
        pass


def test_registry_operations_are_traced(ledger, organization, anchor, config, funded):
    from gateway.cogateway.registry import CoGateway
    from tests.conftest import COGATEWAY, REDEEM_POOL

    tracer = Tracer()
    spans = []
    tracer.add_exporter(spans.append)
    gateway = CoGateway(COGATEWAY, ledger, REDEEM_POOL, organization, anchor, config, tracer=tracer)
    message_hash = gateway.request_redeem(REDEEMER, 1, 0, 0, 1, BENEFICIARY, HASH_LOCK)
    assert spans[-1].name == "request_redeem"
    assert spans[-1].attributes["message_hash"] == message_hash


class TestAuditLogger:

    def test_chain_links_records(self):
        audit = AuditLogger()
        first = audit.log("0xa", "request_redeem", "0x01", "success")
        second = audit.log("0xa", "accept_redeem", "0x01", "success")
        assert first.previous_hash == AuditLogger.GENESIS
        assert second.previous_hash == first.digest()
        assert audit.verify_chain()

    def test_tampering_breaks_chain(self):
        audit = AuditLogger()
        audit.log("0xa", "request_redeem", "0x01", "success")
        audit.log("0xa", "accept_redeem", "0x01", "success")
        audit._events[0].outcome = "rejected"
        assert not audit.verify_chain()


def test_each_root_span_starts_a_new_trace():
    tracer = Tracer()
    with tracer.span("first", GatewayLayer.REGISTRY) as first:
        pass
    with tracer.span("second", GatewayLayer.REGISTRY) as second:
        pass
    assert first.trace_id != second.trace_id
    assert second.parent_span_id == ""
