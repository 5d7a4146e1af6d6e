import uuid
from datetime import datetime
from typing import Protocol, runtime_checkable
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

class TicketSnapshot(BaseModel):
    """Read-only projection of a ticket row, re-read after every mutation."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: uuid.UUID
    org_id: uuid.UUID
    subject: str
    description: str | None = None
    priority: str
    status: str
    assigned_team_id: uuid.UUID | None = None
    assignee_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    requester_id: uuid.UUID
    created_at: datetime
    first_response_due_at: datetime | None = None
    due_at: datetime | None = None
    sla_paused_at: datetime | None = None
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    completed_at: datetime | None = None

@runtime_checkable
class TicketStorePort(Protocol):
    async def get_snapshot(self, tx: AsyncSession, ticket_id: uuid.UUID, *, for_update: bool = False) -> TicketSnapshot | None: ...
    async def update_fields(self, tx: AsyncSession, ticket_id: uuid.UUID, **fields) -> None: ...
    async def add_message(self, tx: AsyncSession, ticket_id: uuid.UUID, *, author_id: uuid.UUID, body: str, type: str) -> None: ...

@runtime_checkable
class EventLogPort(Protocol):
    async def append(self, tx: AsyncSession, ticket_id: uuid.UUID, type: str, payload: dict, actor_id: uuid.UUID | None) -> None: ...
