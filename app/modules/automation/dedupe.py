import uuid
from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.modules.automation.repository import AutomationExecutionRepository

class ExecutionDeduplicator:
    """Has this rule already fired successfully for this ticket and trigger inside the window?"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], window: timedelta):
        self.session_factory = session_factory
        self.window = window

    async def already_executed(self, rule_id: uuid.UUID, ticket_id: uuid.UUID, trigger: str, *, now: datetime | None = None) -> bool:
        since = (now or datetime.now(timezone.utc)) - self.window
        async with self.session_factory() as session:
            count = await AutomationExecutionRepository(session).count_successful_since(rule_id, ticket_id, trigger, since)
        return count > 0
