"""Tests for the HTTP API — app factory, gateway, response mapping and
the ``POST /sentiment`` endpoint.

Uses FastAPI's TestClient as a context manager so background
executions keep running on the client's event loop between requests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sentiflow.api.app import create_app
from sentiflow.api.gateway import RequestGateway
from sentiflow.api.responses import (
    ERROR_STATUS,
    SUCCESS_STATUS,
    StartError,
    StartSuccess,
    map_start_outcome,
)
from sentiflow.capabilities import CapabilitySet, task_handlers
from sentiflow.capabilities.stub import (
    StubLanguageDetector,
    StubSentimentAnalyzer,
    StubTranslator,
)
from sentiflow.config.settings import Settings
from sentiflow.workflows import (
    ExecutionHandle,
    ExecutionStatus,
    StartExecutionError,
    WorkflowEngine,
    build_sentiment_workflow,
)


@pytest.fixture
def settings():
    return Settings(CAPABILITY_PROVIDER="stub", RETRY_INTERVAL_SECONDS=0.0)


@pytest.fixture
def capabilities():
    return CapabilitySet(
        language_detector=StubLanguageDetector(),
        translator=StubTranslator(),
        sentiment_analyzer=StubSentimentAnalyzer(),
    )


@pytest.fixture
def client(settings, capabilities):
    """Create a test client for the Sentiflow API."""
    app = create_app(settings, capabilities=capabilities)
    with TestClient(app) as c:
        yield c


def _wait(client: TestClient, arn: str):
    engine = client.app.state.engine
    return client.portal.call(engine.wait, arn, 5)


# ===========================================================================
# Response mapping
# ===========================================================================


class TestResponseMapper:
    """Pure mapping of start outcomes."""

    def test_success(self):
        started = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        mapped = map_start_outcome(StartSuccess("req-1", "arn:x:1", started))
        assert mapped.status_code == SUCCESS_STATUS == 200
        assert mapped.body == {
            "requestId": "req-1",
            "executionArn": "arn:x:1",
            "startDate": "2024-05-01T12:00:00+00:00",
        }

    def test_error(self):
        mapped = map_start_outcome(StartError("req-2", "boom"))
        assert mapped.status_code == ERROR_STATUS == 500
        assert mapped.body == {"requestId": "req-2", "message": "boom"}

    def test_success_and_error_statuses_differ(self):
        assert SUCCESS_STATUS != ERROR_STATUS


# ===========================================================================
# Gateway
# ===========================================================================


class TestRequestGateway:
    """Gateway validation and start handling against a mock engine."""

    def _gateway(self):
        engine = MagicMock()
        engine.start.return_value = ExecutionHandle(
            "arn:test:execution:wf:1", datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        definition = build_sentiment_workflow()
        return RequestGateway(engine, definition), engine, definition

    def test_valid_payload_starts_execution(self):
        gateway, engine, definition = self._gateway()
        outcome = gateway.start({"txt": "hello"}, "r1")

        assert isinstance(outcome, StartSuccess)
        assert outcome.execution_arn == "arn:test:execution:wf:1"
        assert outcome.request_id == "r1"
        engine.start.assert_called_once_with(definition, {"txt": "hello"})

    def test_extra_fields_are_not_forwarded(self):
        gateway, engine, definition = self._gateway()
        gateway.start({"txt": "hello", "other": 1}, "r1")
        engine.start.assert_called_once_with(definition, {"txt": "hello"})

    @pytest.mark.parametrize("payload", [{}, {"txt": 5}, {"txt": None}, ["txt"], None, "txt"])
    def test_invalid_payload_never_reaches_engine(self, payload):
        gateway, engine, _ = self._gateway()
        outcome = gateway.start(payload, "r1")

        assert isinstance(outcome, StartError)
        assert outcome.message.startswith("Invalid request body")
        engine.start.assert_not_called()

    def test_missing_field_named_in_message(self):
        gateway, _, _ = self._gateway()
        outcome = gateway.start({}, "r1")
        assert "'txt'" in outcome.message

    def test_start_failure_becomes_error(self):
        gateway, engine, _ = self._gateway()
        engine.start.side_effect = StartExecutionError("Execution limit reached")

        outcome = gateway.start({"txt": "hello"}, "r9")

        assert isinstance(outcome, StartError)
        assert outcome.request_id == "r9"
        assert "Execution limit reached" in outcome.message


# ===========================================================================
# App factory
# ===========================================================================


class TestAppFactory:
    """Verify the app factory assembles routes correctly."""

    def test_creates_fastapi_app(self, settings):
        app = create_app(settings)
        assert app.title == "Sentiflow"

    def test_registers_routes(self, settings):
        app = create_app(settings)
        paths = {r.path for r in app.routes if hasattr(r, "path")}
        assert "/sentiment" in paths
        assert "/health" in paths

    def test_docs_disabled(self, settings):
        app = create_app(settings, include_docs=False)
        paths = {r.path for r in app.routes if hasattr(r, "path")}
        assert "/docs" not in paths

    def test_uses_configured_target_language(self):
        app = create_app(Settings(TARGET_LANGUAGE="ES"))
        assert app.state.definition.metadata["target_language"] == "es"


class TestHealthEndpoint:
    def test_health_check(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "version" in data


# ===========================================================================
# POST /sentiment
# ===========================================================================


class TestSentimentEndpoint:
    """End-to-end behaviour of the gateway over HTTP."""

    def test_portuguese_text_skips_translation(self, client, capabilities):
        resp = client.post("/sentiment", json={"txt": "Eu amo isso"})

        assert resp.status_code == 200
        body = resp.json()
        assert set(body) == {"requestId", "executionArn", "startDate"}
        assert body["executionArn"].startswith("arn:sentiflow:states:local:execution:SentimentAnalisys:")
        datetime.fromisoformat(body["startDate"])

        execution = _wait(client, body["executionArn"])
        assert execution.status == ExecutionStatus.SUCCEEDED
        assert capabilities.translator.calls == []
        assert capabilities.sentiment_analyzer.calls == [("Eu amo isso", "pt")]
        assert execution.output["Sentiment"] == "POSITIVE"

    def test_english_text_is_translated(self, client, capabilities):
        resp = client.post("/sentiment", json={"txt": "I love this"})
        assert resp.status_code == 200

        execution = _wait(client, resp.json()["executionArn"])
        assert execution.status == ExecutionStatus.SUCCEEDED
        assert capabilities.translator.calls == [("I love this", "en", "pt")]
        assert capabilities.sentiment_analyzer.calls == [("Eu amo isso", "pt")]

    def test_missing_txt_rejected_before_start(self, client):
        resp = client.post("/sentiment", json={})

        assert resp.status_code == 500
        body = resp.json()
        assert set(body) == {"requestId", "message"}
        assert "txt" in body["message"]
        assert client.app.state.engine.list_executions() == []

    def test_non_string_txt_rejected(self, client):
        resp = client.post("/sentiment", json={"txt": 42})
        assert resp.status_code == 500
        assert client.app.state.engine.list_executions() == []

    def test_malformed_json_rejected(self, client):
        resp = client.post(
            "/sentiment", content=b"{not json", headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 500
        assert "JSON" in resp.json()["message"]

    def test_deeply_nested_json_rejected(self, client):
        body = b"[" * 100000 + b"]" * 100000
        resp = client.post("/sentiment", content=body, headers={"Content-Type": "application/json"})

        assert resp.status_code == 500
        assert set(resp.json()) == {"requestId", "message"}
        assert "JSON" in resp.json()["message"]
        assert client.app.state.engine.list_executions() == []

    def test_failed_execution_does_not_change_response(self, client):
        # No recognizable words: the detector returns no languages.
        resp = client.post("/sentiment", json={"txt": "12345"})
        assert resp.status_code == 200

        execution = _wait(client, resp.json()["executionArn"])
        assert execution.status == ExecutionStatus.FAILED
        assert execution.error == "States.Runtime"

    def test_request_id_header_is_honoured(self, client):
        resp = client.post(
            "/sentiment", json={"txt": "Eu amo isso"}, headers={"X-Request-ID": "req-abc"},
        )
        assert resp.json()["requestId"] == "req-abc"
        assert resp.headers["X-Request-ID"] == "req-abc"

    def test_request_id_generated(self, client):
        first = client.post("/sentiment", json={}).json()["requestId"]
        second = client.post("/sentiment", json={}).json()["requestId"]
        assert first and second and first != second

    def test_start_failure_returns_500(self, settings, capabilities):
        engine = WorkflowEngine(task_handlers(capabilities), max_concurrent_executions=0)
        app = create_app(settings, engine=engine)
        with TestClient(app) as client:
            resp = client.post("/sentiment", json={"txt": "Eu amo isso"})

        assert resp.status_code == 500
        assert "Execution not started" in resp.json()["message"]

    def test_openapi_schema(self, client):
        resp = client.get("/openapi.json")
        assert resp.status_code == 200
        schema = resp.json()
        operation = schema["paths"]["/sentiment"]["post"]
        body_schema = operation["requestBody"]["content"]["application/json"]["schema"]
        assert body_schema["required"] == ["txt"]
