"""
Unit tests for src/curation/caller.py.

The chat completion service is replaced by ``httpx.MockTransport`` so each
test controls the exact HTTP exchange.
"""

from __future__ import annotations

import json

import httpx
import pytest

from src.curation.caller import RemoteCaller, build_request_payload
from src.curation.credentials import CredentialPool
from src.curation.errors import (
    EmptyResponse,
    MalformedOutput,
    SchemaViolation,
    TransportError,
)

from .conftest import completion, model_reply, run

ENDPOINT = "https://llm.example.test/v1/chat/completions"


def _call(handler, payload=None, temperature=0.0):
    """Run one RemoteCaller.call against a mock handler."""
    credential = CredentialPool(["sk-caller-test-01"]).acquire()

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            caller = RemoteCaller(client, endpoint=ENDPOINT, model_id="test-model", timeout=5)
            return await caller.call(
                credential, "SYSTEM", payload or {"statement": "s"}, temperature
            )

    return run(go())


class TestBuildRequestPayload:

    def test_messages_and_format(self):
        body = build_request_payload("m", "SYS", {"statement": "ação"}, 0.3)
        assert body["model"] == "m"
        assert body["temperature"] == 0.3
        assert body["messages"][0] == {"role": "system", "content": "SYS"}
        assert json.loads(body["messages"][1]["content"]) == {"statement": "ação"}
        assert body["response_format"] == {"type": "json_object"}

    def test_format_hint_optional(self):
        body = build_request_payload("m", "SYS", {}, 0.0, response_format=None)
        assert "response_format" not in body


class TestRemoteCallerSuccess:

    def test_sends_auth_and_returns_output(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion(json.dumps(model_reply())))

        result = _call(handler, temperature=0.0)
        assert seen["auth"] == "Bearer sk-caller-test-01"
        assert seen["body"]["model"] == "test-model"
        assert result.output.corrected_topic == "monomios"
        assert result.latency_seconds >= 0

    def test_reply_wrapped_in_prose(self):
        content = "Here is the JSON you asked for:\n" + json.dumps(model_reply()) + "\nDone."
        result = _call(lambda request: httpx.Response(200, json=completion(content)))
        assert result.output.correct_option_index == 0


class TestRemoteCallerFailures:

    def test_rate_limit_carries_status(self):
        with pytest.raises(TransportError) as excinfo:
            _call(lambda request: httpx.Response(429, text="Too Many Requests"))
        assert excinfo.value.status_code == 429
        assert "429" in str(excinfo.value)

    def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError) as excinfo:
            _call(handler)
        assert excinfo.value.status_code is None

    def test_connection_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            _call(handler)

    def test_empty_completion(self):
        with pytest.raises(EmptyResponse):
            _call(lambda request: httpx.Response(200, json=completion("")))

    def test_non_json_body(self):
        with pytest.raises(MalformedOutput):
            _call(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    def test_prose_without_object(self):
        with pytest.raises(MalformedOutput):
            _call(lambda request: httpx.Response(200, json=completion("I cannot help.")))

    def test_schema_violation(self):
        reply = model_reply()
        del reply["hint"]
        with pytest.raises(SchemaViolation):
            _call(lambda request: httpx.Response(200, json=completion(json.dumps(reply))))
