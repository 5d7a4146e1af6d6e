import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.tickets.models import Ticket, TicketMessage, TicketEvent
from app.platform.ports.ticket_store import TicketSnapshot, TicketStorePort, EventLogPort

class TicketRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, org_id: uuid.UUID, **data) -> Ticket:
        obj = Ticket(org_id=org_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, org_id: uuid.UUID, ticket_id: uuid.UUID) -> Ticket | None:
        q = select(Ticket).where(
            Ticket.id == ticket_id,
            Ticket.org_id == org_id,
            Ticket.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_messages(self, org_id: uuid.UUID, ticket_id: uuid.UUID) -> Sequence[TicketMessage]:
        q = select(TicketMessage).where(
            TicketMessage.org_id == org_id,
            TicketMessage.ticket_id == ticket_id,
            TicketMessage.deleted_at.is_(None),
        ).order_by(TicketMessage.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def list_events(self, org_id: uuid.UUID, ticket_id: uuid.UUID) -> Sequence[TicketEvent]:
        q = select(TicketEvent).where(
            TicketEvent.org_id == org_id,
            TicketEvent.ticket_id == ticket_id,
        ).order_by(TicketEvent.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()


class TicketStore(TicketStorePort):
    """Ticket reads/writes for automation; every call runs on the caller's transaction."""

    async def _load(self, tx: AsyncSession, ticket_id: uuid.UUID, for_update: bool = False) -> Ticket | None:
        q = select(Ticket).where(Ticket.id == ticket_id, Ticket.deleted_at.is_(None))
        if for_update:
            q = q.with_for_update()
        res = await tx.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def get_snapshot(self, tx: AsyncSession, ticket_id: uuid.UUID, *, for_update: bool = False) -> TicketSnapshot | None:
        obj = await self._load(tx, ticket_id, for_update)
        return TicketSnapshot.model_validate(obj) if obj else None

    async def update_fields(self, tx: AsyncSession, ticket_id: uuid.UUID, **fields) -> None:
        obj = await self._load(tx, ticket_id)
        if obj is None:
            raise LookupError("Ticket not found")
        # None is meaningful here (clearing an assignee), so every key is applied
        for k, v in fields.items():
            setattr(obj, k, v)
        await tx.flush()

    async def add_message(self, tx: AsyncSession, ticket_id: uuid.UUID, *, author_id: uuid.UUID, body: str, type: str) -> None:
        ticket = await tx.get(Ticket, ticket_id)
        tx.add(TicketMessage(org_id=ticket.org_id, ticket_id=ticket_id, author_id=author_id, body=body, type=type))
        await tx.flush()


class TicketEventLog(EventLogPort):
    async def append(self, tx: AsyncSession, ticket_id: uuid.UUID, type: str, payload: dict, actor_id: uuid.UUID | None) -> None:
        ticket = await tx.get(Ticket, ticket_id)
        tx.add(TicketEvent(org_id=ticket.org_id, ticket_id=ticket_id, type=type, payload=payload, created_by_id=actor_id))
        await tx.flush()
