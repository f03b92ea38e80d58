"""
One-way synchronisation of task state into an external ticket system.
The engine only ever pushes: ticket status and comments are never read back.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Protocol

import httpx

from kanban.core.config import Settings
from kanban.models.task import TaskStatus

logger = logging.getLogger(__name__)


class TicketStatus:
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


def ticket_status_for(task_status: str | None) -> str:
    """Map a task status onto the ticket workflow. Unknown statuses open the ticket."""
    if task_status == TaskStatus.IN_PROGRESS:
        return TicketStatus.IN_PROGRESS
    if task_status == TaskStatus.DONE:
        return TicketStatus.RESOLVED
    return TicketStatus.OPEN


class TicketSyncAdapter(Protocol):
    async def push_status(self, ticket_id: int, status: str) -> None: ...

    async def mirror_comment(
        self,
        ticket_id: int,
        *,
        text: str,
        author_id: uuid.UUID | None,
        created_at: datetime,
    ) -> None: ...


class NullTicketSyncAdapter:
    """Used when no ticket system is configured; every call is a no-op."""

    async def push_status(self, ticket_id: int, status: str) -> None:
        logger.debug("Ticket sync disabled, dropping status %s for ticket %s", status, ticket_id)

    async def mirror_comment(
        self,
        ticket_id: int,
        *,
        text: str,
        author_id: uuid.UUID | None,
        created_at: datetime,
    ) -> None:
        logger.debug("Ticket sync disabled, dropping comment for ticket %s", ticket_id)


class TicketApiError(RuntimeError):
    def __init__(self, *, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


async def _request_json(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
    r = await client.request(method, path, **kwargs)
    if r.status_code >= 400:
        raise TicketApiError(
            status_code=r.status_code,
            message=(r.text or "Ticket request failed")[:500],
        )
    if r.status_code == 204 or not r.content:
        return None
    return r.json()


class HttpTicketSyncAdapter:
    """
    Talks to a REST ticket service:

        PATCH /tickets/{id}            {"status": ...}
        POST  /tickets/{id}/comments   {"text", "created_by", "created_at"}

    ``transport`` lets tests plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def httpx_client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def push_status(self, ticket_id: int, status: str) -> None:
        async with self.httpx_client() as client:
            await _request_json(client, "PATCH", f"/tickets/{ticket_id}", json={"status": status})
        logger.info("Ticket %s status pushed: %s", ticket_id, status)

    async def mirror_comment(
        self,
        ticket_id: int,
        *,
        text: str,
        author_id: uuid.UUID | None,
        created_at: datetime,
    ) -> None:
        payload = {
            "text": text,
            "created_by": str(author_id) if author_id else None,
            "created_at": created_at.isoformat(),
        }
        async with self.httpx_client() as client:
            await _request_json(client, "POST", f"/tickets/{ticket_id}/comments", json=payload)
        logger.info("Comment mirrored to ticket %s", ticket_id)


def build_ticket_adapter(settings: Settings) -> TicketSyncAdapter:
    if not settings.ticket_sync_enabled:
        return NullTicketSyncAdapter()
    return HttpTicketSyncAdapter(
        settings.TICKET_API_URL,  # type: ignore[arg-type]
        token=settings.TICKET_API_TOKEN,
        timeout=settings.TICKET_API_TIMEOUT_SECONDS,
    )
