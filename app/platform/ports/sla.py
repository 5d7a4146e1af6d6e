import uuid
from typing import Protocol, runtime_checkable
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

class SlaTargets(BaseModel):
    policy_config_id: uuid.UUID | None = None  # None when the hard-coded defaults apply
    first_response_hours: int
    resolution_hours: int

@runtime_checkable
class SlaEnginePort(Protocol):
    async def resync(self, tx: AsyncSession, ticket_id: uuid.UUID, overrides: dict | None = None) -> None: ...
    async def policy_config_for(self, tx: AsyncSession, priority: str, team_id: uuid.UUID | None) -> SlaTargets: ...
