import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.identity.models import User, Team, TeamMember
from app.platform.ports.directory import DirectoryPort

class IdentityRepository:
    def __init__(self, session: AsyncSession):
        self.s = session

    async def add_user(self, org: uuid.UUID, **data) -> User:
        obj = User(org_id=org, **data); self.s.add(obj); await self.s.flush(); return obj

    async def add_team(self, org: uuid.UUID, **data) -> Team:
        obj = Team(org_id=org, **data); self.s.add(obj); await self.s.flush(); return obj

    async def add_member(self, org: uuid.UUID, team_id: uuid.UUID, user_id: uuid.UUID, role: str = "AGENT") -> TeamMember:
        obj = TeamMember(org_id=org, team_id=team_id, user_id=user_id, role=role); self.s.add(obj); await self.s.flush(); return obj


class DirectoryRepository(DirectoryPort):
    """Membership and user lookups used by automation actions, always inside the caller's transaction."""

    async def is_team_member(self, tx: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        q = select(TeamMember.id).where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id,
            TeamMember.deleted_at.is_(None),
        )
        res = await tx.execute(q)
        return res.first() is not None

    async def team_lead_ids(self, tx: AsyncSession, team_id: uuid.UUID) -> list[uuid.UUID]:
        q = select(TeamMember.user_id).where(
            TeamMember.team_id == team_id,
            TeamMember.role == "LEAD",
            TeamMember.deleted_at.is_(None),
        ).order_by(TeamMember.created_at.asc())
        res = await tx.execute(q)
        return list(res.scalars().all())

    async def user_exists(self, tx: AsyncSession, user_id: uuid.UUID) -> bool:
        res = await tx.execute(select(User.id).where(User.id == user_id, User.deleted_at.is_(None)))
        return res.first() is not None

    async def find_owner_id(self, tx: AsyncSession, org_id: uuid.UUID) -> uuid.UUID | None:
        q = select(User.id).where(
            User.org_id == org_id,
            User.role == "OWNER",
            User.deleted_at.is_(None),
        ).order_by(User.created_at.asc()).limit(1)
        res = await tx.execute(q)
        return res.scalar_one_or_none()
