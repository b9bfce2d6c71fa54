import logging

from claimflow.core.request_context import current_request_id, current_tenant_id
from claimflow.shared.logging import RequestContextFilter


def _record() -> logging.LogRecord:
    return logging.LogRecord("claimflow.test", logging.INFO, __file__, 1, "hello", None, None)


def test_filter_stamps_request_context():
    tenant_token = current_tenant_id.set("tenant-a")
    request_token = current_request_id.set("req-1")
    try:
        record = _record()
        assert RequestContextFilter().filter(record) is True
    finally:
        current_request_id.reset(request_token)
        current_tenant_id.reset(tenant_token)

    assert record.tenant_id == "tenant-a"
    assert record.request_id == "req-1"


def test_filter_uses_placeholder_outside_request():
    record = _record()
    RequestContextFilter().filter(record)

    assert record.tenant_id == "-"
    assert record.request_id == "-"
