import json
import logging

from shared.core import get_logger, set_request_context, tenant_scope
from shared.core.logging_config import SecurityFilter, StructuredFormatter, request_id_var


def make_record(msg, **extra):
    record = logging.LogRecord("inventory_ledger.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_tags_tenant_and_request():
    token = request_id_var.set(None)
    try:
        set_request_context(request_id="req-1")
        with tenant_scope("acme"):
            payload = json.loads(StructuredFormatter().format(
                make_record("Reservation created", extra_fields={"item_id": 3})))
    finally:
        request_id_var.reset(token)

    assert payload["message"] == "Reservation created"
    assert payload["trace"] == {"request_id": "req-1", "tenant_id": "acme"}
    assert payload["custom"] == {"item_id": 3}
    assert payload["level"] == "INFO"


def test_formatter_without_context_has_no_trace():
    payload = json.loads(StructuredFormatter().format(make_record("plain")))
    assert "trace" not in payload


def test_security_filter_redacts():
    record = make_record("password hunter2")
    SecurityFilter().filter(record)
    assert "password=***REDACTED***" in record.msg


def test_adapter_copies_tenant_onto_records(caplog):
    logger = get_logger("inventory_ledger.test")
    with caplog.at_level(logging.INFO, logger="inventory_ledger.test"):
        with tenant_scope("globex"):
            logger.info("hello", extra={"extra_fields": {"k": "v"}})
    [record] = [r for r in caplog.records if r.getMessage() == "hello"]
    assert record.tenant_id == "globex"
    assert record.extra_fields == {"k": "v"}
