import uuid
from typing import Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession

@runtime_checkable
class NotificationPort(Protocol):
    async def create(self, tx: AsyncSession, *, user_id: uuid.UUID, type: str, title: str, body: str, ticket_id: uuid.UUID | None) -> None: ...
