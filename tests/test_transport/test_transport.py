"""Tests for the httpx transport: headers, bodies, faults and bounded batches."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx
import pytest

from fluentrest.exceptions import FluentRestError, RequestTimeoutError, TransportFault
from fluentrest.hooks import HookContext, header_decorator
from fluentrest.models import RequestDescriptor
from fluentrest.transport import MAX_POOL_SIZE, Transport

URL = "https://api.example.com/v1/products"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _descriptor(method: str = "GET", **kwargs: Any) -> RequestDescriptor:
    kwargs.setdefault("url", URL)
    return RequestDescriptor(method=method, **kwargs)


class Recorder:
    """Sync MockTransport handler that records requests."""

    def __init__(self, status: int = 200, json_body: Any = None) -> None:
        self.requests: list[httpx.Request] = []
        self._status = status
        self._json = json_body if json_body is not None else {"ok": True}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self._status, json=self._json)


# ---------------------------------------------------------------------------
# execute()
# ---------------------------------------------------------------------------


class TestExecute:
    def test_accept_header_is_sent(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.execute(_descriptor())
        assert recorder.requests[0].headers["Accept"] == "application/json"

    def test_decorators_add_headers(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.add_before_send("token", header_decorator("X-Auth-Token", "secret"))
        transport.add_before_send("domain", header_decorator("X-Auth-Domain", "shop.test"))
        transport.execute(_descriptor())
        headers = recorder.requests[0].headers
        assert headers["X-Auth-Token"] == "secret"
        assert headers["X-Auth-Domain"] == "shop.test"

    def test_decorator_with_same_name_replaces(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.add_before_send("token", header_decorator("X-Auth-Token", "old"))
        transport.add_before_send("token", header_decorator("X-Auth-Token", "new"))
        transport.execute(_descriptor())
        assert recorder.requests[0].headers.get_list("X-Auth-Token") == ["new"]

    def test_descriptor_headers_win(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.add_before_send("token", header_decorator("X-Auth-Token", "default"))
        transport.execute(_descriptor(headers={"X-Auth-Token": "override"}))
        assert recorder.requests[0].headers["X-Auth-Token"] == "override"

    def test_query_is_flattened(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.execute(_descriptor(query={"filter": {"type": ["a", "b"]}, "limit": 5}))
        params = recorder.requests[0].url.params
        assert params["filter[type][0]"] == "a"
        assert params["filter[type][1]"] == "b"
        assert params["limit"] == "5"

    def test_mapping_body_is_json(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.execute(_descriptor("POST", body={"name": "x"}))
        sent = recorder.requests[0]
        assert json.loads(sent.content) == {"name": "x"}
        assert sent.headers["Content-Type"] == "application/json"

    def test_empty_mapping_body_is_omitted(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.execute(_descriptor("DELETE", body={}))
        assert recorder.requests[0].content == b""

    def test_raw_body_is_sent_unchanged(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.execute(_descriptor("POST", body="name=x&price=3"))
        assert recorder.requests[0].content == b"name=x&price=3"

    def test_custom_method(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.execute(_descriptor("COPY"))
        assert recorder.requests[0].method == "COPY"

    def test_error_status_is_returned(self) -> None:
        transport = Transport(http_transport=httpx.MockTransport(Recorder(status=500)))
        assert transport.execute(_descriptor()).status_code == 500

    def test_connect_error_is_transport_fault(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = Transport(http_transport=httpx.MockTransport(handler))
        with pytest.raises(TransportFault, match="Connection failed"):
            transport.execute(_descriptor())

    def test_timeout_is_request_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        transport = Transport(http_transport=httpx.MockTransport(handler))
        with pytest.raises(RequestTimeoutError, match="timed out"):
            transport.execute(_descriptor())

    def test_redirect_loop_is_transport_fault(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        transport = Transport(http_transport=httpx.MockTransport(handler))
        with pytest.raises(TransportFault, match="Request failed"):
            transport.execute(_descriptor())

    def test_on_complete_hook_sees_status(self) -> None:
        seen: list[HookContext] = []
        transport = Transport(http_transport=httpx.MockTransport(Recorder(status=201)))
        transport.add_on_complete(seen.append)
        transport.execute(_descriptor("POST"))
        assert seen[0].status_code == 201
        assert seen[0].method == "POST"

    def test_request_is_logged(self, verbose_output, capfd) -> None:
        transport = Transport(http_transport=httpx.MockTransport(Recorder()))
        transport.execute(_descriptor())
        assert f"[debug] GET {URL}" in capfd.readouterr().err


# ---------------------------------------------------------------------------
# execute_all()
# ---------------------------------------------------------------------------


class TestExecuteAll:
    def _run(
        self, transport: Transport, requests: list[RequestDescriptor], **kwargs: Any
    ) -> tuple[dict[str, int], dict[str, Any]]:
        completed: dict[str, int] = {}
        failed: dict[str, Any] = {}

        def on_complete(request: RequestDescriptor, response: httpx.Response) -> None:
            completed[request.queue_name] = response.status_code

        def on_error(
            request: RequestDescriptor,
            response: Optional[httpx.Response],
            fault: Optional[FluentRestError],
        ) -> None:
            failed[request.queue_name] = response.status_code if response is not None else fault

        transport.execute_all(requests, on_complete, on_error, **kwargs)
        return completed, failed

    def test_empty_batch_sends_nothing(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        assert self._run(transport, []) == ({}, {})
        assert recorder.requests == []

    def test_outcomes_are_routed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/missing"):
                return httpx.Response(404, json={"message": "no"})
            if request.url.path.endswith("/down"):
                raise httpx.ConnectError("refused", request=request)
            if request.url.path.endswith("/loop"):
                raise httpx.TooManyRedirects("too many", request=request)
            return httpx.Response(200, json={"ok": True})

        transport = Transport(http_transport=httpx.MockTransport(handler))
        completed, failed = self._run(
            transport,
            [
                _descriptor(url=f"{URL}/1", queue_name="ok"),
                _descriptor(url=f"{URL}/missing", queue_name="missing"),
                _descriptor(url=f"{URL}/down", queue_name="down"),
                _descriptor(url=f"{URL}/loop", queue_name="loop"),
            ],
        )
        assert completed == {"ok": 200}
        assert failed["missing"] == 404
        assert isinstance(failed["down"], TransportFault)
        assert isinstance(failed["loop"], TransportFault)

    def test_decorators_apply_to_batches(self) -> None:
        recorder = Recorder()
        transport = Transport(http_transport=httpx.MockTransport(recorder))
        transport.add_before_send("token", header_decorator("X-Auth-Token", "secret"))
        self._run(transport, [_descriptor(queue_name="a"), _descriptor(queue_name="b")])
        assert [r.headers["X-Auth-Token"] for r in recorder.requests] == ["secret", "secret"]

    @pytest.mark.parametrize("limit, total", [(MAX_POOL_SIZE, 60), (3, 10)])
    def test_concurrency_is_bounded(self, limit: int, total: int) -> None:
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, json={"ok": True})

        transport = Transport(http_transport=httpx.MockTransport(handler))
        requests = [_descriptor(url=f"{URL}/{i}", queue_name=str(i)) for i in range(total)]
        completed, failed = self._run(transport, requests, max_concurrency=limit)

        assert len(completed) == total
        assert failed == {}
        assert 1 < peak <= limit

    def test_default_limit_is_25(self) -> None:
        assert MAX_POOL_SIZE == 25
