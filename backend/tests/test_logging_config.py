"""
test_logging_config.py — JSON log formatting and the request timing middleware.
"""

import json
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from panelops.services.logging_config import JSONFormatter
from panelops.services.middleware import RequestTimingMiddleware


class TestJSONFormatter:

    def _record(self, **extra):
        record = logging.LogRecord("panelops-resolver", logging.INFO, __file__, 10, "Resolved %s", ("GL-4-10",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_core_fields(self):
        line = json.loads(JSONFormatter().format(self._record()))
        assert line["level"] == "INFO"
        assert line["logger"] == "panelops-resolver"
        assert line["message"] == "Resolved GL-4-10"

    def test_known_extra_fields_are_copied(self):
        line = json.loads(JSONFormatter().format(self._record(organization_id="org-a", category="groove", secret="x")))
        assert line["organization_id"] == "org-a"
        assert line["category"] == "groove"
        assert "secret" not in line


class TestRequestTimingMiddleware:

    def _client(self):
        app = FastAPI()
        app.add_middleware(RequestTimingMiddleware)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        return TestClient(app)

    def test_headers_added(self):
        response = self._client().get("/ping")
        assert response.status_code == 200
        assert response.headers["X-Request-ID"]
        assert float(response.headers["X-Process-Time"]) >= 0

    def test_incoming_request_id_is_kept(self):
        response = self._client().get("/ping", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestLogContextFilter:

    def test_context_values_are_stamped(self):
        from panelops.services.logging_config import LogContextFilter, organization_id_var, request_id_var

        req_token = request_id_var.set("req-9")
        org_token = organization_id_var.set("org-b")
        try:
            record = logging.LogRecord("panelops-api", logging.INFO, __file__, 1, "hello", (), None)
            assert LogContextFilter().filter(record)
        finally:
            organization_id_var.reset(org_token)
            request_id_var.reset(req_token)
        assert record.request_id == "req-9"
        assert record.organization_id == "org-b"

    def test_explicit_extra_wins(self):
        from panelops.services.logging_config import LogContextFilter, organization_id_var

        token = organization_id_var.set("org-b")
        try:
            record = logging.LogRecord("panelops-api", logging.INFO, __file__, 1, "hello", (), None)
            record.organization_id = "org-a"
            LogContextFilter().filter(record)
        finally:
            organization_id_var.reset(token)
        assert record.organization_id == "org-a"

    def test_unset_context_is_left_out_of_json(self):
        from panelops.services.logging_config import LogContextFilter

        record = logging.LogRecord("panelops-api", logging.INFO, __file__, 1, "hello", (), None)
        LogContextFilter().filter(record)
        line = json.loads(JSONFormatter().format(record))
        assert "request_id" not in line
        assert "organization_id" not in line
