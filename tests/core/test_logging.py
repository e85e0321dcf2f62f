from __future__ import annotations

import json
import logging
import sys

from tenantguard.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging
from tenantguard.middleware.request_context import (
    RequestContextFilter,
    org_id_var,
    procedure_var,
    request_id_var,
    user_id_var,
)


def _record(msg: str = "hello %s", args: tuple = ("world",), level: int = logging.INFO):
    return logging.LogRecord(
        name="tenantguard.test",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=args,
        exc_info=None,
    )


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "tenantguard.test"
    assert parsed["message"] == "hello world"
    assert "timestamp" in parsed


def test_json_formatter_lifts_tenant_fields_to_top_level() -> None:
    record = _record()
    record.request_id = "req-1"  # type: ignore[attr-defined]
    record.user_id = "u-1"  # type: ignore[attr-defined]
    record.org_id = "o-1"  # type: ignore[attr-defined]
    record.procedure = "org.inviteMember"  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "req-1"
    assert parsed["user_id"] == "u-1"
    assert parsed["org_id"] == "o-1"
    assert parsed["procedure"] == "org.inviteMember"


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("failed", ())
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)
    assert "ValueError: boom" in json.loads(output)["exception"]


def test_container_formatter_adds_location_for_warnings() -> None:
    formatter = _ContainerFormatter()
    info = formatter.format(_record())
    warning = formatter.format(_record(level=logging.WARNING))
    assert "[test.py:42]" not in info
    assert "[test.py:42]" in warning


def test_context_filter_copies_request_scope_onto_records() -> None:
    tokens = [
        request_id_var.set("req-9"),
        user_id_var.set("user-9"),
        org_id_var.set("org-9"),
        procedure_var.set("project.create"),
    ]
    try:
        record = _record()
        assert RequestContextFilter().filter(record) is True
    finally:
        for var, token in zip(
            (request_id_var, user_id_var, org_id_var, procedure_var), tokens, strict=True
        ):
            var.reset(token)

    assert record.request_id == "req-9"  # type: ignore[attr-defined]
    assert record.user_id == "user-9"  # type: ignore[attr-defined]
    assert record.org_id == "org-9"  # type: ignore[attr-defined]
    assert record.procedure == "project.create"  # type: ignore[attr-defined]


def test_context_filter_leaves_unset_fields_off() -> None:
    record = _record()
    RequestContextFilter().filter(record)
    assert record.request_id == "-"  # type: ignore[attr-defined]
    assert not hasattr(record, "org_id")


def test_setup_logging_installs_filters_on_the_handler() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        f = RequestContextFilter()
        setup_logging("warning", json_format=True, filters=(f,))
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert f in root.handlers[0].filters
        assert isinstance(root.handlers[0].formatter, _JsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
