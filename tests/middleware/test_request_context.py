"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- Request timing logged
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from lessongate.core.logging import request_id_var


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    """When no X-Request-ID header is sent, one is generated."""
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    # Should be a valid UUID
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    """When the client sends X-Request-ID, the same value is echoed back."""
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_oversized_request_id_is_replaced(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "x" * 500})
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    """Even error responses (401, 404) get an X-Request-ID header."""
    resp = client.post("/v1/progress/completions", json={"lesson_id": "x"})
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None

    resp = client.get("/v1/access/lessons/does-not-exist")
    assert resp.status_code == 404
    assert resp.headers.get("x-request-id") is not None


def test_request_id_context_is_reset_after_request(client: TestClient) -> None:
    client.get("/health", headers={"X-Request-ID": "scoped-id"})
    assert request_id_var.get() == "-"


def test_request_summary_logged_with_request_id(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="lessongate.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "log-me"})
    summaries = [
        r for r in caplog.records if r.name == "lessongate.middleware.request_context"
    ]
    assert summaries
    assert summaries[-1].request_id == "log-me"  # type: ignore[attr-defined]
    assert summaries[-1].status_code == 200  # type: ignore[attr-defined]
