"""Minimal async client for the Convex HTTP function API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from storagegc.error_codes import ErrorCode
from storagegc.exceptions import BackendError, UnauthorizedError

logger = logging.getLogger(__name__)

_WAIT_NORMAL = wait_exponential(min=1, max=10)
_WAIT_RATE_LIMIT = wait_exponential(min=2, max=30)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, BackendError) and exc.retryable


def _wait_retry(state: RetryCallState) -> float:
    exc = state.outcome.exception() if state.outcome else None
    if isinstance(exc, BackendError) and exc.status_code == 429:
        return _WAIT_RATE_LIMIT(state)
    return _WAIT_NORMAL(state)


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    function = getattr(exc, "function", "convex")
    wait_s = state.next_action.sleep if state.next_action else None
    logger.warning(
        "convex query retrying (function=%s, attempt=%s, wait_s=%s, error=%s)",
        function,
        state.attempt_number,
        wait_s,
        exc,
    )


def with_upload_secret(args: dict[str, Any], auth_token: str | None) -> dict[str, Any]:
    """Add `uploadSecret` to mutation args; optional validators reject an explicit null."""
    if auth_token is None:
        return args
    return {**args, "uploadSecret": auth_token}


def _format_http_error(response: httpx.Response) -> str:
    status = response.status_code
    reason = response.reason_phrase
    detail = response.text.strip() if response.content else ""
    if detail:
        if len(detail) > 2000:
            detail = detail[:2000] + "…"
        return f"HTTP {status} {reason}: {detail}"
    return f"HTTP {status} {reason}"


class ConvexClient:
    """Calls deployed query/mutation functions over HTTP.

    Queries are idempotent and retried on rate limiting or 5xx responses.
    Mutations are sent exactly once.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 60.0,
        max_read_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.max_read_retries = max(1, int(max_read_retries))
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call(self, kind: str, path: str, args: dict[str, Any]) -> Any:
        client = await self._get_client()
        payload = {"path": path, "args": args, "format": "json"}
        try:
            response = await client.post(f"{self.url}/api/{kind}", json=payload)
        except httpx.HTTPError as exc:
            raise BackendError(path, str(exc)) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("status") == "error":
            message = str(body.get("errorMessage") or "unknown error")
            if "Unauthorized" in message:
                raise UnauthorizedError(f"{path}: {message}")
            raise BackendError(path, message, status_code=response.status_code)

        if response.status_code >= 400:
            code = ErrorCode.RATE_LIMITED if response.status_code == 429 else ErrorCode.BACKEND_FAILED
            raise BackendError(
                path,
                _format_http_error(response),
                error_code=code,
                status_code=response.status_code,
            )

        if not isinstance(body, dict) or body.get("status") != "success":
            raise BackendError(path, f"unexpected response: {response.text[:200]!r}")
        return body.get("value")

    async def query(self, path: str, args: dict[str, Any] | None = None) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_read_retries),
            wait=_wait_retry,
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._call("query", path, dict(args or {}))
        raise AssertionError("unreachable")

    async def mutation(self, path: str, args: dict[str, Any] | None = None) -> Any:
        return await self._call("mutation", path, dict(args or {}))

    async def get_bytes(self, url: str, *, timeout: float | None = None) -> bytes:
        client = await self._get_client()
        if timeout is None:
            response = await client.get(url)
        else:
            response = await client.get(url, timeout=httpx.Timeout(timeout))
        response.raise_for_status()
        return bytes(response.content)

    async def post_bytes(self, url: str, data: bytes, *, content_type: str) -> Any:
        client = await self._get_client()
        response = await client.post(url, content=data, headers={"Content-Type": content_type})
        response.raise_for_status()
        return response.json()
