"""Test stubs for offline execution.

* ScriptedTransport – in-memory MigrationTransport that replays a script of
  responses, exceptions and futures for each endpoint.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from migration_tracker.exceptions import TransportError
from migration_tracker.models import MigrationRequest

__all__ = ["ScriptedTransport", "network_down", "status"]


def status(code: Optional[str], /, **extra: Any) -> Dict[str, Any]:
    """Build a raw status payload; ``code=None`` omits the status field."""
    payload: Dict[str, Any] = {"id": "test-migration", **extra}
    if code is not None:
        payload["status"] = code
    return payload


def network_down(message: str = "connect ECONNREFUSED") -> TransportError:
    return TransportError(message, status_class="none")


class ScriptedTransport:  # noqa: D101 – test stub
    def __init__(
        self,
        statuses: Optional[List[Any]] = None,
        progress: Optional[List[Any]] = None,
        submit_result: Any = None,
    ):
        self.statuses = list(statuses or [])
        self.progress = list(progress or [])
        self.submit_result = submit_result
        self.submitted: List[MigrationRequest] = []
        self.status_calls = 0
        self.progress_calls = 0
        self.closed = False
        self.status_requested = asyncio.Event()
        self._last_status: Any = None

    # ------------------------------------------------------------------
    # MigrationTransport interface
    # ------------------------------------------------------------------
    async def submit(self, request: MigrationRequest) -> Dict[str, Any]:
        self.submitted.append(request)
        await asyncio.sleep(0)
        if isinstance(self.submit_result, BaseException):
            raise self.submit_result
        if self.submit_result is not None:
            return await self._resolve(self.submit_result)
        return {"success": True, "bridgeId": request.bridge_id, "status": "pending_burn"}

    async def get_status(self, migration_id: str) -> Dict[str, Any]:
        self.status_calls += 1
        self.status_requested.set()
        if self.statuses:
            self._last_status = self.statuses.pop(0)
        return await self._resolve(self._last_status)

    async def get_progress(self, migration_id: str) -> Dict[str, Any]:
        self.progress_calls += 1
        if not self.progress:
            raise TransportError("progress endpoint unavailable", status_class="5xx")
        return await self._resolve(self.progress.pop(0))

    async def aclose(self) -> None:
        self.closed = True

    # ------------------------------------------------------------------
    @staticmethod
    async def _resolve(item: Any) -> Any:
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, asyncio.Future):
            return await item
        await asyncio.sleep(0)  # yield control like a real request would
        return item
