import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.audit.models import AdminAuditEvent

log = logging.getLogger(__name__)

class AuditService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(self,
                  org_id: uuid.UUID,
                  actor_user_id: uuid.UUID,
                  type: str,
                  payload: dict,
                  team_id: uuid.UUID | None = None) -> AdminAuditEvent:
        """Stage an audit row on the caller's session; it commits with the change it describes."""
        ev = AdminAuditEvent(
            org_id=org_id,
            actor_user_id=actor_user_id,
            team_id=team_id,
            type=type,
            payload=payload,
        )
        self.session.add(ev)
        await self.session.flush()
        log.info("audit %s actor=%s team=%s", type, actor_user_id, team_id)
        return ev
