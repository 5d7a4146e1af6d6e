import uuid
from typing import Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession
from app.platform.ports.ticket_store import TicketSnapshot

@runtime_checkable
class StatusTransitionPort(Protocol):
    async def apply(self, tx: AsyncSession, ticket: TicketSnapshot, new_status: str, actor_id: uuid.UUID | None) -> None: ...
