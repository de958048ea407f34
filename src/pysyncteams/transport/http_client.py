"""HTTP transport with timeouts, retries and exponential backoff.

HttpClient performs one logical request per call. Internally it loops over
attempts, retrying transient failures (retryable HTTP statuses, timeouts,
connection-level errors) with exponential backoff, and only ever raises a
final, non-retryable failure:

- WorkflowAPIError for HTTP errors and exhausted/irrecoverable network failures
- OperationCancelledError when the caller's token fires (never retried)

Timeline of one attempt:
    build request → send (bounded by timeout, raced against token)
        → 2xx: parse body, return
        → non-2xx: build error → retry after backoff, or raise
        → exception: transient → retry after backoff, or raise as status 0
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import socket
from collections.abc import Mapping
from typing import Any

import httpx

from pysyncteams import __version__
from pysyncteams.config import ClientConfig
from pysyncteams.errors import (
    OperationCancelledError,
    RequestDescriptor,
    WorkflowAPIError,
    WorkflowValidationError,
)
from pysyncteams.models import RetryPolicy
from pysyncteams.transport.cancellation import CancellationToken, run_cancellable, sleep

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)

_TRANSIENT_MESSAGES = (
    "ECONNRESET",
    "ENOTFOUND",
    "EAI_AGAIN",
    "ETIMEDOUT",
    "SOCKET HANG UP",
)

_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    socket.gaierror,
)


def build_user_agent(suffix: str | None = None) -> str:
    base = f"pysyncteams/{__version__}"
    if not suffix:
        return base
    return f"{base} {suffix}".strip()


def is_transient_network_error(error: BaseException) -> bool:
    """
    Classify an exception raised while sending a request.

    Transient: timeouts, DNS failures, connection resets and dropped
    sockets. Everything else (including OperationCancelledError) is not.
    """
    if isinstance(error, _TRANSIENT_TYPES):
        return True
    if isinstance(error, OSError):
        text = str(error).upper()
        return any(marker in text for marker in _TRANSIENT_MESSAGES)
    return False


def _is_structured(body: Any) -> bool:
    return body is not None and not isinstance(body, (str, bytes, bytearray, memoryview))


def _debug_body(body: Any) -> Any:
    """JSON-safe snapshot of a request body for error reports."""
    if body is None:
        return None
    if isinstance(body, (str, int, float, bool)):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        return None
    try:
        return json.loads(json.dumps(body))
    except (TypeError, ValueError):
        return None


def _is_json(response: httpx.Response) -> bool:
    return "application/json" in response.headers.get("content-type", "").lower()


def _response_headers(response: httpx.Response) -> list[tuple[str, str]]:
    return [(key.decode("latin-1"), value.decode("latin-1")) for key, value in response.headers.raw]


def _parse_error_body(response: httpx.Response) -> Any:
    try:
        if _is_json(response):
            return response.json()
        text = response.text
        return text if text else None
    except (ValueError, UnicodeDecodeError) as e:
        return {"parseError": str(e)}


def _error_message(response: httpx.Response, data: Any) -> str:
    prefix = f"{response.status_code} {response.reason_phrase}"
    if isinstance(data, str) and data:
        return f"{prefix}: {data}"
    if isinstance(data, Mapping):
        message = data.get("message") or data.get("error")
        if isinstance(message, str) and message:
            return f"{prefix}: {message}"
    return prefix


class HttpClient:
    """Sends requests to the workflow service.

    The underlying ``httpx.AsyncClient`` is created once, from the
    configuration's transport, and reused by every call until aclose().

    Usage:
        http = HttpClient(ClientConfig(api_key="sts_..."))
        data = await http.request("/api/v1", method="POST", body={...})
        await http.aclose()
    """

    def __init__(self, config: ClientConfig):
        self._config = config
        self._default_headers = httpx.Headers(
            {
                "Accept": "application/json",
                "User-Agent": build_user_agent(config.user_agent_suffix),
                API_KEY_HEADER: config.api_key,
            }
        )
        self._default_headers.update(dict(config.default_headers))
        self._client = httpx.AsyncClient(transport=config.transport, timeout=None)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def resolve_url(self, path: str) -> str:
        if _ABSOLUTE_URL.match(path):
            return path
        separator = "" if path.startswith("/") else "/"
        return f"{self._config.base_url}{separator}{path}"

    def merge_headers(self, headers: Mapping[str, str] | None, body: Any) -> httpx.Headers:
        """Built-in defaults → configured defaults → per-call headers (later wins)."""
        merged = httpx.Headers(self._default_headers)
        if headers:
            merged.update(dict(headers))
        if _is_structured(body) and "content-type" not in merged:
            merged["Content-Type"] = "application/json"
        return merged

    @staticmethod
    def _serialize_body(body: Any) -> bytes | None:
        if body is None:
            return None
        if isinstance(body, (bytes, bytearray, memoryview)):
            return bytes(body)
        if isinstance(body, str):
            return body.encode("utf-8")
        try:
            return json.dumps(body, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise WorkflowValidationError(f"body must be JSON serializable: {e}") from e

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        timeout_ms: float | None = None,
        retry_policy: RetryPolicy | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Any:
        """
        Perform one logical request, retrying transient failures.

        Args:
            path: Path relative to the base URL, or an absolute http(s) URL
            method: HTTP method
            headers: Per-call headers, override configured ones
            body: Structured value (sent as JSON), str or bytes
            timeout_ms: Per-attempt timeout; defaults to the configured one
            retry_policy: Per-call policy; defaults to the configured one
            cancel_token: Aborts the request, including backoff sleeps

        Returns:
            Parsed JSON for JSON responses, text otherwise, None for 204

        Raises:
            WorkflowAPIError: Final HTTP or network failure
            WorkflowValidationError: A structured body is not valid JSON
            OperationCancelledError: The token fired
        """
        policy = retry_policy or self._config.retry_policy
        timeout_ms = timeout_ms if timeout_ms is not None else self._config.timeout_ms
        method = method.upper()
        url = self.resolve_url(path)
        merged_headers = self.merge_headers(headers, body)
        content = self._serialize_body(body)
        descriptor = RequestDescriptor(method=method, url=url, body=_debug_body(body))

        for attempt in range(1, policy.max_attempts + 1):
            logger.debug(f"{method} {url} attempt {attempt}/{policy.max_attempts}")
            try:
                response = await run_cancellable(
                    self._send(method, url, merged_headers, content, timeout_ms), cancel_token
                )
            except OperationCancelledError:
                raise
            except Exception as e:
                if (
                    attempt < policy.max_attempts
                    and policy.max_attempts > 1
                    and is_transient_network_error(e)
                ):
                    delay_ms = policy.backoff_ms(attempt)
                    logger.warning(
                        f"{method} {url} failed ({type(e).__name__}: {e}); "
                        f"retrying in {delay_ms:.0f}ms"
                    )
                    await sleep(delay_ms, cancel_token)
                    continue

                raise WorkflowAPIError(
                    str(e) or f"Request failed: {type(e).__name__}",
                    status=0,
                    status_text="NETWORK_ERROR",
                    request=descriptor,
                    cause=e,
                ) from e

            if response.is_success:
                return self._parse_success(response, descriptor)

            error = self._to_error(response, descriptor)
            if attempt < policy.max_attempts and policy.should_retry_status(response.status_code):
                delay_ms = policy.backoff_ms(attempt)
                logger.warning(
                    f"{method} {url} returned {response.status_code}; retrying in {delay_ms:.0f}ms"
                )
                await sleep(delay_ms, cancel_token)
                continue

            raise error

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    async def _send(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        content: bytes | None,
        timeout_ms: float,
    ) -> httpx.Response:
        try:
            async with asyncio.timeout(timeout_ms / 1000.0):
                return await self._client.request(method, url, headers=headers, content=content)
        except TimeoutError as e:
            raise TimeoutError(f"Request aborted after {timeout_ms}ms ({method} {url})") from e

    @staticmethod
    def _parse_success(response: httpx.Response, descriptor: RequestDescriptor) -> Any:
        if response.status_code == 204:
            return None
        if not _is_json(response):
            return response.text
        try:
            return response.json()
        except ValueError as e:
            raise WorkflowAPIError(
                "Failed to parse JSON response",
                status=response.status_code,
                status_text=response.reason_phrase,
                headers=_response_headers(response),
                request=descriptor,
                cause=e,
            ) from e

    @staticmethod
    def _to_error(response: httpx.Response, descriptor: RequestDescriptor) -> WorkflowAPIError:
        data = _parse_error_body(response)
        return WorkflowAPIError(
            _error_message(response, data),
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=_response_headers(response),
            data=data,
            request=descriptor,
        )
