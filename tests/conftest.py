"""
Shared fixtures: a throwaway aiosqlite database per test, the wired rule
engine, and a small seeder for users, teams, tickets and rules.
"""
import os

# must be set before app.core.config is imported
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DB_MANAGE", "migrations")
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///./.pytest-helpdesk.db")

import uuid
from datetime import datetime
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.db import create_all, make_session_factory
from app.modules.automation.models import AutomationRule, AutomationExecution
from app.modules.identity.models import User, Team
from app.modules.identity.repository import IdentityRepository
from app.modules.notifications.service import NotificationsService
from app.modules.sla.models import SlaInstance
from app.modules.tickets.models import Ticket, TicketEvent, TicketMessage
from app.modules.tickets.schemas import TicketCreate
from app.modules.tickets.service import TicketService
from app.platform.provider_registry import registry

ORG_ID = uuid.UUID(int=1)


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def rule_engine(session_factory):
    return registry.rule_engine(session_factory)


@pytest.fixture
def executor():
    return registry.action_executor()


class Seeder:
    """Writes fixtures through the real repositories, one committed session per call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def user(self, role: str = "AGENT", email: str | None = None, primary_team_id: uuid.UUID | None = None, org_id: uuid.UUID = ORG_ID) -> User:
        email = email or f"{uuid.uuid4().hex[:8]}@example.com"
        async with self.session_factory() as s:
            obj = await IdentityRepository(s).add_user(
                org_id, email=email, display_name=email.split("@")[0], role=role, primary_team_id=primary_team_id,
            )
            await s.commit()
            return obj

    async def team(self, name: str = "Support", org_id: uuid.UUID = ORG_ID) -> Team:
        async with self.session_factory() as s:
            obj = await IdentityRepository(s).add_team(org_id, name=name)
            await s.commit()
            return obj

    async def member(self, team: Team, user: User, role: str = "AGENT") -> None:
        async with self.session_factory() as s:
            await IdentityRepository(s).add_member(team.org_id, team.id, user.id, role)
            await s.commit()

    async def ticket(self, requester: User, **fields) -> Ticket:
        """Create a ticket the way the API does, minus automation."""
        fields.setdefault("subject", "Printer on fire")
        async with self.session_factory() as s:
            service = TicketService(
                s,
                sla=registry.sla(),
                statuses=registry.status_transitions(),
                events=registry.events(),
            )
            return await service.create_ticket(requester.org_id, requester.id, TicketCreate(**fields))

    async def rule(self, created_by: User, **fields) -> AutomationRule:
        fields.setdefault("name", f"rule-{uuid.uuid4().hex[:6]}")
        fields.setdefault("trigger", "TICKET_CREATED")
        fields.setdefault("conditions", [{"field": "priority", "operator": "in", "value": ["P1", "P2", "P3", "P4"]}])
        fields.setdefault("actions", [{"type": "set_priority", "priority": "P1"}])
        async with self.session_factory() as s:
            obj = AutomationRule(org_id=created_by.org_id, created_by_id=created_by.id, **fields)
            s.add(obj)
            await s.commit()
            return obj

    async def execution(self, rule: AutomationRule, ticket: Ticket, trigger: str, executed_at: datetime, success: bool = True) -> None:
        async with self.session_factory() as s:
            s.add(AutomationExecution(
                org_id=rule.org_id, rule_id=rule.id, ticket_id=ticket.id,
                trigger=trigger, success=success, executed_at=executed_at,
            ))
            await s.commit()

    # ---- reads ----

    async def _all(self, q):
        async with self.session_factory() as s:
            return (await s.execute(q)).scalars().all()

    async def get_ticket(self, ticket_id: uuid.UUID) -> Ticket:
        async with self.session_factory() as s:
            return await s.get(Ticket, ticket_id)

    async def executions(self, rule_id: uuid.UUID):
        return await self._all(select(AutomationExecution).where(AutomationExecution.rule_id == rule_id))

    async def events(self, ticket_id: uuid.UUID, type: str | None = None):
        q = select(TicketEvent).where(TicketEvent.ticket_id == ticket_id).order_by(TicketEvent.created_at.asc())
        if type is not None:
            q = q.where(TicketEvent.type == type)
        return await self._all(q)

    async def messages(self, ticket_id: uuid.UUID):
        return await self._all(select(TicketMessage).where(TicketMessage.ticket_id == ticket_id))

    async def notifications(self, ticket_id: uuid.UUID):
        async with self.session_factory() as s:
            return await NotificationsService().list_for_ticket(s, ticket_id)

    async def sla_instance(self, ticket_id: uuid.UUID) -> SlaInstance | None:
        rows = await self._all(select(SlaInstance).where(SlaInstance.ticket_id == ticket_id))
        return rows[0] if rows else None


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
async def people(seed):
    """An owner, a support team with one lead and one agent, and a requester."""
    owner = await seed.user(role="OWNER", email="owner@example.com")
    team = await seed.team("Support")
    lead = await seed.user(role="AGENT", email="lead@example.com")
    agent = await seed.user(role="AGENT", email="agent@example.com")
    requester = await seed.user(role="REQUESTER", email="requester@example.com")
    await seed.member(team, lead, "LEAD")
    await seed.member(team, agent, "AGENT")
    return {"owner": owner, "team": team, "lead": lead, "agent": agent, "requester": requester}
