"""
Unit tests for src/curation/store.py against httpx.MockTransport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from src.curation.errors import StoreError
from src.curation.store import QuestionStore

from .conftest import make_row, run


def _call(handler, action):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            store = QuestionStore(client, "https://store.test/", "service-key")
            return await action(store)
    return run(go())


class TestFetch:

    def test_filters_by_topic_with_limit(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[make_row()])

        rows = _call(handler, lambda store: store.fetch("binomios", 20))

        assert rows == [make_row()]
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/questions"
        assert request.url.params["topic"] == "eq.binomios"
        assert request.url.params["limit"] == "20"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["Authorization"] == "Bearer service-key"

    def test_no_limit_param_when_uncapped(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        assert _call(handler, lambda store: store.fetch("monomios")) == []
        assert "limit" not in seen[0].url.params

    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"rows": []}),
        httpx.Response(200, text="not json"),
    ])
    def test_bad_responses_raise(self, response):
        with pytest.raises(StoreError):
            _call(lambda request: response, lambda store: store.fetch("monomios"))

    def test_transport_failure_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(StoreError):
            _call(handler, lambda store: store.fetch("monomios"))


class TestUpdate:

    def test_patch_by_id(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        _call(handler, lambda store: store.update("q9", {"statement_md": "fixed"}))

        request = seen[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.q9"
        assert request.headers["Prefer"] == "return=minimal"
        assert json.loads(request.content) == {"statement_md": "fixed"}

    def test_rejected_update_carries_status(self):
        with pytest.raises(StoreError) as info:
            _call(lambda request: httpx.Response(409, text="conflict"),
                  lambda store: store.update("q9", {"hint": "x"}))
        assert info.value.status_code == 409
