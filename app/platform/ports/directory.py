import uuid
from typing import Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession

@runtime_checkable
class DirectoryPort(Protocol):
    async def is_team_member(self, tx: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID) -> bool: ...
    async def team_lead_ids(self, tx: AsyncSession, team_id: uuid.UUID) -> list[uuid.UUID]: ...
    async def user_exists(self, tx: AsyncSession, user_id: uuid.UUID) -> bool: ...
    async def find_owner_id(self, tx: AsyncSession, org_id: uuid.UUID) -> uuid.UUID | None: ...
