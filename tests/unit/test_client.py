# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Unit tests for MihomoClient.

Requests are served by ``httpx.MockTransport`` so no daemon is needed.

Tests cover:
- URL validation and default headers
- Decoding of each endpoint
- Status, transport and payload failures mapped to UpstreamError
- Reading only the first object of the /traffic stream
- The per-call timeout bounding the whole call
- Delay probe path quoting and query parameters
- Aborting in-flight requests through a cancel event
"""

import asyncio

import httpx
import pytest

from mihomo_exporter.client import DEFAULT_TIMEOUT, DELAY_TEST_URL, MihomoClient
from mihomo_exporter.exceptions import (
    ConfigurationError,
    RequestCancelledError,
    UpstreamError,
)

BASE_URL = "http://127.0.0.1:9097"


def make_client(handler, token="", timeout=DEFAULT_TIMEOUT):
    return MihomoClient(
        BASE_URL,
        token=token,
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


def json_response(payload, status_code=200):
    return httpx.Response(status_code, json=payload)


class EndlessTrafficStream(httpx.AsyncByteStream):
    """A /traffic body that never ends and records when it is closed."""

    def __init__(self, first=b'{"up":1,"down":2}\n', interval=0.05):
        self.first = first
        self.interval = interval
        self.closed = False

    async def __aiter__(self):
        yield self.first
        while True:
            await asyncio.sleep(self.interval)
            yield b'{"up":3,"down":4}\n'

    async def aclose(self):
        self.closed = True


class TestClientSetup:
    @pytest.mark.parametrize(
        "url", ["", "127.0.0.1:9097", "ftp://127.0.0.1", "http://", "not a url"]
    )
    def test_rejects_invalid_url(self, url) -> None:
        """Verify relative, non-http and malformed URLs are rejected."""
        with pytest.raises(ConfigurationError):
            MihomoClient(url)

    def test_strips_trailing_slash(self) -> None:
        """Verify a trailing slash is dropped from the base URL."""
        client = MihomoClient("http://127.0.0.1:9097/")
        assert client.base_url == "http://127.0.0.1:9097"

    @pytest.mark.parametrize("timeout", [0, -1.0, float("nan"), float("inf")])
    def test_rejects_unusable_timeout(self, timeout) -> None:
        """Verify the timeout must be a positive, finite number."""
        with pytest.raises(ConfigurationError):
            MihomoClient(BASE_URL, timeout=timeout)

    def test_headers_without_token(self) -> None:
        """Verify no Authorization header is built without a token."""
        client = MihomoClient(BASE_URL)
        assert "Authorization" not in client.get_headers()

    def test_headers_with_token(self) -> None:
        """Verify the token is sent as a bearer credential."""
        client = MihomoClient(BASE_URL, token="s3cret")
        assert client.get_headers()["Authorization"] == "Bearer s3cret"


class TestGetConnections:
    @pytest.mark.asyncio
    async def test_decodes_payload(self, conns_payload, conn_payload) -> None:
        """Verify /connections decodes into a ConnectionsResponse."""
        body = conns_payload(conn_payload(upload=3, download=4))

        def handler(request):
            assert request.url.path == "/connections"
            return json_response(body)

        async with make_client(handler) as client:
            result = await client.get_connections()

        assert result.upload_total == 3
        assert result.connections[0].metadata.host == "a.com"

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, conns_payload) -> None:
        """Verify the configured token reaches the daemon."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return json_response(conns_payload())

        async with make_client(handler, token="s3cret") as client:
            await client.get_connections()

        assert seen["auth"] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_omits_auth_without_token(self, conns_payload) -> None:
        """Verify no Authorization header is sent without a token."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return json_response(conns_payload())

        async with make_client(handler) as client:
            await client.get_connections()

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_non_200_raises_upstream_error(self) -> None:
        """Verify a non-200 status carries its code and endpoint."""

        def handler(request):
            return httpx.Response(401, json={"message": "Unauthorized"})

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_connections()

        assert exc_info.value.status_code == 401
        assert exc_info.value.endpoint == "/connections"
        assert "401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_json_raises_upstream_error(self) -> None:
        """Verify an undecodable body is an upstream failure."""

        def handler(request):
            return httpx.Response(200, content=b"{not json")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="Invalid JSON"):
                await client.get_connections()

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_upstream_error(self) -> None:
        """Verify valid JSON of the wrong shape is an upstream failure."""

        def handler(request):
            return json_response({"connections": "nope"})

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="Unexpected payload"):
                await client.get_connections()

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream_error(self) -> None:
        """Verify transport failures keep the httpx error as the cause."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_connections()

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestGetTraffic:
    @pytest.mark.asyncio
    async def test_reads_first_object_only(self) -> None:
        """Only the first sample of a multi-object stream is decoded."""
        body = b'{"up":100,"down":200}\n{"up":300,"down":400}\n{"up":5,"down":6}\n'

        def handler(request):
            assert request.url.path == "/traffic"
            return httpx.Response(200, content=body)

        async with make_client(handler) as client:
            traffic = await client.get_traffic()

        assert (traffic.up, traffic.down) == (100, 200)

    @pytest.mark.asyncio
    async def test_object_split_across_chunks(self) -> None:
        """Verify an object spread over several chunks is reassembled."""

        async def chunks():
            yield b'  {"up": 1'
            yield b'0, "do'
            yield b'wn": 20}\n'
            yield b'{"up": 99, "down": 99}\n'

        def handler(request):
            return httpx.Response(200, content=chunks())

        async with make_client(handler) as client:
            traffic = await client.get_traffic()

        assert (traffic.up, traffic.down) == (10, 20)

    @pytest.mark.asyncio
    async def test_closes_endless_stream_after_first_object(self) -> None:
        """The call returns on the first object and hangs up the stream."""
        stream = EndlessTrafficStream()

        def handler(request):
            return httpx.Response(200, stream=stream)

        async with make_client(handler) as client:
            traffic = await asyncio.wait_for(client.get_traffic(), timeout=2.0)
            assert stream.closed

        assert traffic.up == 1

    @pytest.mark.asyncio
    async def test_closes_endless_stream_on_malformed_first_object(self) -> None:
        """A first object that fails validation still hangs up the stream."""
        stream = EndlessTrafficStream(first=b'{"up":"lots","down":2}\n')

        def handler(request):
            return httpx.Response(200, stream=stream)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="Unexpected payload"):
                await asyncio.wait_for(client.get_traffic(), timeout=2.0)
            assert stream.closed

    @pytest.mark.asyncio
    async def test_closes_endless_stream_on_cancel(self) -> None:
        """Firing the cancel event mid-stream hangs up the stream."""
        stream = EndlessTrafficStream(first=b'{"up":')
        delivered = asyncio.Event()

        def handler(request):
            delivered.set()
            return httpx.Response(200, stream=stream)

        cancel_event = asyncio.Event()
        async with make_client(handler) as client:
            call = asyncio.create_task(client.get_traffic(cancel_event=cancel_event))
            await delivered.wait()
            await asyncio.sleep(0.05)
            cancel_event.set()

            with pytest.raises(RequestCancelledError):
                await asyncio.wait_for(call, timeout=2.0)
            assert stream.closed

    @pytest.mark.asyncio
    async def test_empty_stream_raises(self) -> None:
        """Verify a stream that ends with no data is an upstream failure."""

        def handler(request):
            return httpx.Response(200, content=b"")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="ended before"):
                await client.get_traffic()

    @pytest.mark.asyncio
    async def test_truncated_object_raises(self) -> None:
        """Verify a stream that ends mid-object is an upstream failure."""

        def handler(request):
            return httpx.Response(200, content=b'{"up": 1, "do')

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError):
                await client.get_traffic()

    @pytest.mark.asyncio
    async def test_non_200_raises(self) -> None:
        """Verify a non-200 stream status is an upstream failure."""

        def handler(request):
            return httpx.Response(503)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_traffic()

        assert exc_info.value.status_code == 503


class TestWholeCallTimeout:
    @pytest.mark.asyncio
    async def test_slow_trickle_stream_is_cut_off(self) -> None:
        """A body trickling one byte at a time cannot outlive the timeout."""
        body = b'{"up": 1, "down": 2, "padding": "' + b"x" * 40 + b'"}\n'

        async def trickle():
            for i in range(len(body)):
                await asyncio.sleep(0.1)
                yield body[i : i + 1]

        def handler(request):
            return httpx.Response(200, content=trickle())

        loop = asyncio.get_running_loop()
        async with make_client(handler, timeout=0.3) as client:
            started = loop.time()
            with pytest.raises(UpstreamError, match="timed out") as exc_info:
                await client.get_traffic()
            elapsed = loop.time() - started

        assert elapsed < 1.0
        assert exc_info.value.endpoint == "/traffic"

    @pytest.mark.asyncio
    async def test_slow_response_is_cut_off_with_cancel_event(self) -> None:
        """The timeout also applies while racing a cancel event."""

        async def handler(request):
            await asyncio.sleep(30)
            return json_response({"delay": 1})

        loop = asyncio.get_running_loop()
        async with make_client(handler, timeout=0.2) as client:
            started = loop.time()
            with pytest.raises(UpstreamError, match="timed out"):
                await client.get_proxy_delay("HK-01", cancel_event=asyncio.Event())
            elapsed = loop.time() - started

        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_fast_response_is_unaffected(self, conns_payload) -> None:
        """Verify calls finishing inside the timeout return normally."""

        def handler(request):
            return json_response(conns_payload())

        async with make_client(handler, timeout=0.5) as client:
            result = await client.get_connections()

        assert result.connections == ()


class TestGetProxies:
    @pytest.mark.asyncio
    async def test_decodes_payload(self, proxies_payload) -> None:
        """Verify /proxies decodes and exposes the concrete nodes."""

        def handler(request):
            assert request.url.path == "/proxies"
            return json_response(proxies_payload)

        async with make_client(handler) as client:
            result = await client.get_proxies()

        assert sorted(result.probe_targets()) == ["HK-01", "JP-01"]


class TestGetProxyDelay:
    @pytest.mark.asyncio
    async def test_returns_delay_and_sends_probe_params(self) -> None:
        """Verify the delay test URL and timeout go out as query params."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path
            seen["params"] = dict(request.url.params)
            return json_response({"delay": 87})

        async with make_client(handler) as client:
            delay = await client.get_proxy_delay("HK-01")

        assert delay == 87
        assert seen["path"].startswith(b"/proxies/HK-01/delay")
        assert seen["params"] == {"url": DELAY_TEST_URL, "timeout": "5000"}

    @pytest.mark.asyncio
    async def test_name_is_path_escaped(self) -> None:
        """Verify spaces, slashes and non-ASCII names are escaped."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path
            return json_response({"delay": 1})

        async with make_client(handler) as client:
            await client.get_proxy_delay("香港 01/fast")

        path = seen["path"].split(b"?")[0]
        assert path == b"/proxies/%E9%A6%99%E6%B8%AF%2001%2Ffast/delay"

    @pytest.mark.asyncio
    async def test_probe_timeout_is_upstream_error(self) -> None:
        """Verify mihomo's 408 for a timed-out probe is an upstream failure."""

        def handler(request):
            return httpx.Response(408, json={"message": "Timeout"})

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_proxy_delay("HK-01")

        assert exc_info.value.status_code == 408


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_aborts_in_flight_request(self) -> None:
        """Verify setting the event aborts a request the daemon never answers."""
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(30)
            return json_response({"delay": 1})

        cancel_event = asyncio.Event()
        async with make_client(handler) as client:
            call = asyncio.create_task(
                client.get_proxy_delay("HK-01", cancel_event=cancel_event)
            )
            await started.wait()
            cancel_event.set()

            with pytest.raises(RequestCancelledError):
                await asyncio.wait_for(call, timeout=2.0)

    @pytest.mark.asyncio
    async def test_already_set_event_cancels_immediately(self) -> None:
        """Verify no request is sent once the event is already set."""
        calls = []

        def handler(request):
            calls.append(request)
            return json_response({"up": 1, "down": 1})

        cancel_event = asyncio.Event()
        cancel_event.set()
        async with make_client(handler) as client:
            with pytest.raises(RequestCancelledError):
                await client.get_connections(cancel_event=cancel_event)

        assert calls == []

    @pytest.mark.asyncio
    async def test_completed_request_is_unaffected(self, conns_payload) -> None:
        """Verify an unset event does not disturb a normal call."""

        def handler(request):
            return json_response(conns_payload())

        cancel_event = asyncio.Event()
        async with make_client(handler) as client:
            result = await client.get_connections(cancel_event=cancel_event)

        assert result.connections == ()

    @pytest.mark.asyncio
    async def test_upstream_error_still_propagates(self) -> None:
        """Verify failures surface unchanged through the cancel race."""

        def handler(request):
            return httpx.Response(500)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError):
                await client.get_proxies(cancel_event=asyncio.Event())
