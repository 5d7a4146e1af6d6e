import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, UniqueConstraint
from app.core.base import Base, TimestampedTenantMixin

class User(Base, TimestampedTenantMixin):
    email: Mapped[str] = mapped_column(String(200))
    display_name: Mapped[str] = mapped_column(String(120))
    role: Mapped[str] = mapped_column(String(16), default="AGENT")  # OWNER | TEAM_ADMIN | AGENT | REQUESTER
    primary_team_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("team.id"), nullable=True)

class Team(Base, TimestampedTenantMixin):
    name: Mapped[str] = mapped_column(String(120))

class TeamMember(Base, TimestampedTenantMixin):
    __table_args__ = (UniqueConstraint("team_id", "user_id"),)

    team_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("team.id"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"))
    role: Mapped[str] = mapped_column(String(16), default="AGENT")  # LEAD | AGENT
