# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Async client for the mihomo REST management API.

The client wraps a single shared ``httpx.AsyncClient`` and exposes the four
read operations the exporter needs. Every operation:

- sends ``Authorization: Bearer <token>`` when a token is configured
- is bounded end to end by the per-call timeout (10 seconds by default)
- decodes the JSON body into a frozen pydantic model
- raises UpstreamError for non-200 statuses, transport failures and
  undecodable bodies
- accepts an optional ``asyncio.Event``; when it fires mid-flight the HTTP
  call is aborted and RequestCancelledError is raised immediately

``/traffic`` is special: mihomo streams one JSON object per second for as
long as the connection stays open. get_traffic() decodes exactly the first
object and closes the stream straight away.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Coroutine
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from typing_extensions import Self

from .exceptions import ConfigurationError, RequestCancelledError, UpstreamError
from .types.api import (
    ApiModel,
    ConnectionsResponse,
    DelayInfo,
    ProxiesResponse,
    Traffic,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=ApiModel)
ResultT = TypeVar("ResultT")

DEFAULT_TIMEOUT = 10.0

CONNECTIONS_ENDPOINT = "/connections"
TRAFFIC_ENDPOINT = "/traffic"
PROXIES_ENDPOINT = "/proxies"

# Delay probes are measured by mihomo against this URL
DELAY_TEST_URL = "https://www.gstatic.com/generate_204"
DELAY_TEST_TIMEOUT_MS = 5000

# Upper bound on bytes buffered while waiting for the first /traffic object
MAX_TRAFFIC_PREFIX = 64 * 1024


def _validate_base_url(base_url: str) -> str:
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"Invalid mihomo API URL {base_url!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"Invalid mihomo API URL {base_url!r}: expected http(s)://host[:port]"
        )
    return base_url.rstrip("/")


class MihomoClient:
    """
    Client for the mihomo management API.

    Safe for concurrent use: the underlying connection pool serves any
    number of in-flight calls, so refresh tasks never serialize on it.

    Example:
        >>> async with MihomoClient("http://127.0.0.1:9097", token="s3cret") as client:
        ...     traffic = await client.get_traffic()
        ...     print(traffic.up, traffic.down)
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: mihomo external-controller URL, e.g. http://127.0.0.1:9097
            token: API secret; omitted from requests when empty
            timeout: Per-call timeout in seconds
            transport: Optional httpx transport (used by tests)

        Raises:
            ConfigurationError: If base_url is not an absolute http(s) URL
        """
        if not math.isfinite(timeout) or timeout <= 0:
            raise ConfigurationError("timeout must be a positive number of seconds")

        self._base_url = _validate_base_url(base_url)
        self._token = token
        self._timeout = timeout
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self.get_headers(),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    def get_headers(self) -> dict[str, str]:
        """Default headers sent with every request."""
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    # === Read operations ===

    async def get_connections(
        self, cancel_event: asyncio.Event | None = None
    ) -> ConnectionsResponse:
        """Fetch all active connections plus the running byte totals."""
        payload = await self._cancellable(
            CONNECTIONS_ENDPOINT,
            self._get_json(CONNECTIONS_ENDPOINT),
            cancel_event,
        )
        return self._decode(ConnectionsResponse, payload, CONNECTIONS_ENDPOINT)

    async def get_traffic(self, cancel_event: asyncio.Event | None = None) -> Traffic:
        """Read the first sample from the /traffic stream, then hang up."""
        payload = await self._cancellable(
            TRAFFIC_ENDPOINT,
            self._read_first_streamed_json(TRAFFIC_ENDPOINT),
            cancel_event,
        )
        return self._decode(Traffic, payload, TRAFFIC_ENDPOINT)

    async def get_proxies(
        self, cancel_event: asyncio.Event | None = None
    ) -> ProxiesResponse:
        """Fetch every proxy and proxy group known to the daemon."""
        payload = await self._cancellable(
            PROXIES_ENDPOINT,
            self._get_json(PROXIES_ENDPOINT),
            cancel_event,
        )
        return self._decode(ProxiesResponse, payload, PROXIES_ENDPOINT)

    async def get_proxy_delay(
        self, name: str, cancel_event: asyncio.Event | None = None
    ) -> int:
        """
        Ask mihomo to delay-test one proxy.

        Args:
            name: Proxy name as listed under /proxies
            cancel_event: Optional stop signal

        Returns:
            Measured delay in milliseconds
        """
        endpoint = f"{PROXIES_ENDPOINT}/{quote(name, safe='')}/delay"
        params = {"url": DELAY_TEST_URL, "timeout": str(DELAY_TEST_TIMEOUT_MS)}
        payload = await self._cancellable(
            endpoint,
            self._get_json(endpoint, params=params),
            cancel_event,
        )
        return self._decode(DelayInfo, payload, endpoint).delay

    # === Lifecycle ===

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.aclose()

    # === Internals ===

    async def _get_json(
        self, endpoint: str, params: dict[str, str] | None = None
    ) -> Any:
        try:
            response = await self._http.get(endpoint, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Request to {endpoint} failed: {e!r}", endpoint=endpoint
            ) from e

        self._raise_for_status(response, endpoint)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Invalid JSON from {endpoint}: {e}", endpoint=endpoint
            ) from e

    async def _read_first_streamed_json(self, endpoint: str) -> Any:
        """
        Decode exactly one JSON value from a streaming endpoint.

        The response is closed on leaving the ``async with`` block whether
        decoding succeeded, failed or was cancelled; the rest of the stream
        is never read.
        """
        decoder = json.JSONDecoder()
        buffer = ""
        try:
            async with self._http.stream("GET", endpoint) as response:
                self._raise_for_status(response, endpoint)
                async for chunk in response.aiter_text():
                    buffer += chunk
                    text = buffer.lstrip()
                    if not text:
                        continue
                    try:
                        value, _ = decoder.raw_decode(text)
                    except json.JSONDecodeError:
                        if len(buffer) > MAX_TRAFFIC_PREFIX:
                            raise UpstreamError(
                                f"No complete JSON object in first "
                                f"{MAX_TRAFFIC_PREFIX} bytes of {endpoint}",
                                endpoint=endpoint,
                            ) from None
                        continue
                    return value
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Request to {endpoint} failed: {e!r}", endpoint=endpoint
            ) from e

        raise UpstreamError(
            f"Stream from {endpoint} ended before a complete JSON object "
            f"({len(buffer)} bytes received)",
            endpoint=endpoint,
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response, endpoint: str) -> None:
        if response.status_code != httpx.codes.OK:
            raise UpstreamError(
                f"API request to {endpoint} failed with status: "
                f"{response.status_code} {response.reason_phrase}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

    @staticmethod
    def _decode(model: type[ModelT], payload: Any, endpoint: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise UpstreamError(
                f"Unexpected payload from {endpoint}: {e.error_count()} validation "
                f"error(s)",
                endpoint=endpoint,
            ) from e

    async def _bounded(
        self, endpoint: str, operation: Coroutine[Any, Any, ResultT]
    ) -> ResultT:
        """
        Await ``operation`` under a deadline covering the whole call.

        httpx applies its timeout to each connect, read and write phase
        separately, so a daemon trickling bytes can keep a single call alive
        indefinitely without this outer bound.
        """
        try:
            return await asyncio.wait_for(operation, self._timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"Request to {endpoint} timed out after {self._timeout}s",
                endpoint=endpoint,
            ) from e

    async def _cancellable(
        self,
        endpoint: str,
        operation: Coroutine[Any, Any, ResultT],
        cancel_event: asyncio.Event | None,
    ) -> ResultT:
        """
        Await ``operation`` unless ``cancel_event`` fires first.

        The operation runs as its own task so that it can be cancelled
        mid-request, which aborts the underlying socket rather than waiting
        for the HTTP timeout.
        """
        if cancel_event is not None and cancel_event.is_set():
            operation.close()
            raise RequestCancelledError(endpoint)

        bounded = self._bounded(endpoint, operation)
        if cancel_event is None:
            return await bounded

        request_task = asyncio.ensure_future(bounded)
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait(
                {request_task, cancel_waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_waiter.cancel()
            if not request_task.done():
                request_task.cancel()
                await asyncio.gather(request_task, return_exceptions=True)

        if request_task.cancelled():
            logger.debug(f"Aborted in-flight request to {endpoint}")
            raise RequestCancelledError(endpoint)
        return request_task.result()


__all__ = [
    "DEFAULT_TIMEOUT",
    "DELAY_TEST_TIMEOUT_MS",
    "DELAY_TEST_URL",
    "MihomoClient",
]
