"""HTTP transport for the migration backend.

The engine only depends on the :class:`MigrationTransport` protocol; this
module also ships the httpx-backed implementation used in production.  Every
failure surfaces as :class:`~migration_tracker.exceptions.TransportError`
carrying a human-readable message and a status class.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Tuple

import httpx

from migration_tracker.core.logging_utils import get_logger
from migration_tracker.core.network_utils import async_retry
from migration_tracker.core.settings import AppSettings, settings
from migration_tracker.exceptions import TransportError
from migration_tracker.models import MigrationRequest

__all__ = ["HttpMigrationTransport", "MigrationTransport", "normalise_error_message"]

logger = get_logger(__name__)


class MigrationTransport(Protocol):
    """Request/response channel the engine talks to."""

    async def submit(self, request: MigrationRequest) -> Dict[str, Any]:
        """Create the migration; return the decoded response body."""
        ...

    async def get_status(self, migration_id: str) -> Dict[str, Any]:
        """Return the decoded status payload for *migration_id*."""
        ...

    async def get_progress(self, migration_id: str) -> Dict[str, Any]:
        """Return the decoded progress payload for *migration_id*."""
        ...

    async def aclose(self) -> None:
        """Release any underlying resources."""
        ...


# ---------------------------------------------------------------------------
# Backend message normalisation
# ---------------------------------------------------------------------------
# (server substring, user-facing message).  The server text is kept as the
# error details so classification can still see it.
_MESSAGE_REWRITES: Tuple[Tuple[str, str], ...] = (
    (
        "Insufficient token balance",
        "Insufficient token balance. Please check your wallet balance and try again.",
    ),
    (
        'column "status" of relation "bridges" does not exist',
        "Database configuration issue. The backend database schema needs to be updated. "
        "Please contact support.",
    ),
    (
        "Failed to store burn record",
        "Database error occurred while processing your transaction. The burn may have "
        "succeeded but could not be recorded. Please check the blockchain explorer and "
        "contact support.",
    ),
    (
        "Failed to complete burn-to-vest operation",
        "The burn operation encountered an issue. Please check the transaction status "
        "and contact support if needed.",
    ),
)


def normalise_error_message(message: str) -> Tuple[str, Optional[str]]:
    """Return ``(user_message, original_message_or_None)`` for a server message."""
    for needle, replacement in _MESSAGE_REWRITES:
        if needle in message:
            return replacement, message
    return message, None


def _body(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _status_class(status_code: int) -> str:
    return "4xx" if 400 <= status_code < 500 else "5xx"


def _error_from_response(response: httpx.Response) -> TransportError:
    body = _body(response)
    server_message = None
    if body:
        server_message = body.get("message") or body.get("error")
    server_message = str(server_message or f"Request failed with status code {response.status_code}")
    message, original = normalise_error_message(server_message)
    payload = dict(body or {})
    if original is not None:
        payload.setdefault("originalMessage", original)
    return TransportError(
        message,
        status_class=_status_class(response.status_code),  # type: ignore[arg-type]
        status_code=response.status_code,
        payload=payload or None,
    )


class HttpMigrationTransport:
    """httpx implementation of :class:`MigrationTransport`."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        submit_path: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        app_settings: Optional[AppSettings] = None,
    ) -> None:
        s = app_settings or settings
        token = auth_token if auth_token is not None else s.auth_token
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._path = (submit_path or s.submit_path).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=base_url or s.api_base_url,
            timeout=timeout if timeout is not None else s.request_timeout_seconds,
            headers=headers,
            transport=http_transport,
        )
        attempts = retry_attempts if retry_attempts is not None else s.request_retry_attempts
        # Only idempotent reads are retried; a duplicate POST would burn twice.
        self._get_status = async_retry(
            attempts=attempts, retry_on=(httpx.TransportError,), operation="get_status"
        )(self._get)
        self._get_progress = async_retry(
            attempts=attempts, retry_on=(httpx.TransportError,), operation="get_progress"
        )(self._get)

    # ------------------------------------------------------------------
    # Low-level
    # ------------------------------------------------------------------
    async def _get(self, path: str) -> httpx.Response:
        return await self._client.get(path)

    async def _call(self, coro, *, operation: str) -> Dict[str, Any]:
        try:
            response = await coro
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Request timed out during {operation}", status_class="timeout"
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"Network error during {operation}: {exc}", status_class="none"
            ) from exc

        if response.is_error:
            error = _error_from_response(response)
            logger.info(
                "transport_http_error",
                operation=operation,
                status_code=response.status_code,
                message=error.message,
            )
            raise error

        body = _body(response)
        if body is None:
            raise TransportError(
                f"Unexpected response body during {operation}",
                status_class="5xx" if response.status_code >= 500 else "none",
                status_code=response.status_code,
            )
        return body

    # ------------------------------------------------------------------
    # MigrationTransport
    # ------------------------------------------------------------------
    async def submit(self, request: MigrationRequest) -> Dict[str, Any]:
        return await self._call(
            self._client.post(self._path, json=request.to_wire()), operation="submit"
        )

    async def get_status(self, migration_id: str) -> Dict[str, Any]:
        return await self._call(
            self._get_status(f"{self._path}/{migration_id}"), operation="get_status"
        )

    async def get_progress(self, migration_id: str) -> Dict[str, Any]:
        return await self._call(
            self._get_progress(f"{self._path}/{migration_id}/progress"),
            operation="get_progress",
        )

    async def aclose(self) -> None:
        await self._client.aclose()
