import uuid
from typing import Protocol, runtime_checkable

@runtime_checkable
class AutomationTriggerPort(Protocol):
    async def fire(self, ticket_id: uuid.UUID, trigger: str) -> None: ...
