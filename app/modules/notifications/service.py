import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.identity.models import User
from app.modules.notifications.models import Notification
from app.platform.ports.notifications import NotificationPort

class NotificationsService(NotificationPort):
    async def create(self, tx: AsyncSession, *, user_id: uuid.UUID, type: str, title: str, body: str, ticket_id: uuid.UUID | None) -> None:
        user = await tx.get(User, user_id)
        n = Notification(org_id=user.org_id, user_id=user_id, type=type, title=title[:240], body=body, ticket_id=ticket_id)
        tx.add(n); await tx.flush()
        # persisted only; delivery (email/push) is owned by the notification worker

    async def list_for_ticket(self, s: AsyncSession, ticket_id: uuid.UUID) -> Sequence[Notification]:
        res = await s.execute(select(Notification).where(Notification.ticket_id==ticket_id, Notification.deleted_at.is_(None)).order_by(Notification.created_at.asc()))
        return res.scalars().all()
