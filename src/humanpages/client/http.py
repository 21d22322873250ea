"""HTTP transport to the Human Pages backend.

Wraps httpx.AsyncClient with the bounded per-call timeout, converts every
failure into a typed domain error, and validates response bodies against
the entity models.

Retry policy: GET requests are pure reads and are retried on transport
failures (timeouts, connection errors) with exponential backoff. Writes
are attempted exactly once.
"""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from humanpages.client.credentials import ANONYMOUS, Credential
from humanpages.config import get_settings
from humanpages.domain.enums import ErrorCode
from humanpages.domain.exceptions import ApiError, TransportError
from humanpages.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

#: Fallback codes when an error body carries no machine-readable code.
STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.API_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.INVALID_STATE,
    429: ErrorCode.RATE_LIMITED,
}

_MESSAGE_KEYS = ("hint", "message", "reason", "error")
_KNOWN_ERROR_KEYS = {"code", *_MESSAGE_KEYS}


def error_from_response(response: httpx.Response) -> ApiError:
    """Build an ApiError from a non-2xx response, passing the backend's code through."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    code = body.get("code") or STATUS_CODES.get(response.status_code, ErrorCode.API_ERROR)
    message = next(
        (str(body[key]) for key in _MESSAGE_KEYS if body.get(key)),
        f"API error: {response.status_code}",
    )
    details = {k: v for k, v in body.items() if k not in _KNOWN_ERROR_KEYS}
    return ApiError(
        message=message,
        code=str(code),
        status_code=response.status_code,
        reason=body.get("reason") or body.get("error"),
        hint=body.get("hint"),
        details=details,
    )


class BackendClient:
    """Async client for the Human Pages REST API.

    Usage:
        async with BackendClient() as client:
            job = await client.get(f"/api/jobs/{job_id}", model=Job)
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        retry_max_wait: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_root).rstrip("/")
        self._retry_attempts = retry_attempts if retry_attempts is not None else settings.read_retry_attempts
        self._retry_max_wait = (
            retry_max_wait if retry_max_wait is not None else settings.read_retry_max_wait_seconds
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.http_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Verbs ---

    async def get(
        self,
        path: str,
        *,
        credential: Credential = ANONYMOUS,
        params: dict[str, str] | None = None,
        model: Any = None,
    ) -> Any:
        """GET with bounded retry on transport failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self._retry_attempts)),
            wait=wait_exponential(multiplier=0.5, max=self._retry_max_wait),
            retry=retry_if_exception_type(TransportError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                body = await self._send("GET", path, credential=credential, params=params)
        return self._parse(body, model, path)

    async def post(
        self,
        path: str,
        *,
        credential: Credential = ANONYMOUS,
        json: Any = None,
        model: Any = None,
    ) -> Any:
        body = await self._send("POST", path, credential=credential, json=json)
        return self._parse(body, model, path)

    async def patch(
        self,
        path: str,
        *,
        credential: Credential = ANONYMOUS,
        json: Any = None,
        model: Any = None,
    ) -> Any:
        body = await self._send("PATCH", path, credential=credential, json=json)
        return self._parse(body, model, path)

    async def delete(
        self,
        path: str,
        *,
        credential: Credential = ANONYMOUS,
        model: Any = None,
    ) -> Any:
        body = await self._send("DELETE", path, credential=credential)
        return self._parse(body, model, path)

    # --- Internals ---

    async def _send(
        self,
        method: str,
        path: str,
        *,
        credential: Credential,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        if hasattr(json, "to_wire"):
            json = json.to_wire()
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=credential.headers(),
            )
        except httpx.TimeoutException as exc:
            logger.warning("client.request_timeout", method=method, path=path)
            raise TransportError(f"Request to {path} timed out", code=ErrorCode.TIMEOUT) from exc
        except httpx.HTTPError as exc:
            logger.warning("client.request_failed", method=method, path=path, error=str(exc))
            raise TransportError(f"Could not reach backend: {exc}", code=ErrorCode.NETWORK_ERROR) from exc

        if response.is_error:
            error = error_from_response(response)
            logger.info(
                "client.api_error",
                method=method,
                path=path,
                status=response.status_code,
                code=error.code,
            )
            raise error

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"Backend returned a non-JSON body for {path}",
                code=ErrorCode.INVALID_RESPONSE,
            ) from exc

    @staticmethod
    def _parse(body: Any, model: type[T] | Any, path: str) -> Any:
        if model is None:
            return body
        try:
            return TypeAdapter(model).validate_python(body)
        except ValidationError as exc:
            logger.warning("client.invalid_response", path=path, errors=exc.error_count())
            raise TransportError(
                f"Backend response for {path} did not match the expected shape",
                code=ErrorCode.INVALID_RESPONSE,
            ) from exc
