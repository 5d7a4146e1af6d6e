import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint
from app.core.base import Base, TimestampedTenantMixin, UTCDateTime

# ---- SLA ----

class SlaPolicyConfig(Base, TimestampedTenantMixin):
    name: Mapped[str] = mapped_column(String(120))
    is_default: Mapped[bool] = mapped_column(default=False)
    enabled: Mapped[bool] = mapped_column(default=True)

class SlaPolicyConfigTarget(Base, TimestampedTenantMixin):
    __table_args__ = (UniqueConstraint("policy_config_id", "priority"),)

    policy_config_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("slapolicyconfig.id"))
    priority: Mapped[str] = mapped_column(String(4))  # P1..P4
    first_response_hours: Mapped[int] = mapped_column(Integer)
    resolution_hours: Mapped[int] = mapped_column(Integer)

class SlaPolicyAssignment(Base, TimestampedTenantMixin):
    team_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("team.id"), index=True)
    policy_config_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("slapolicyconfig.id"))

class SlaInstance(Base, TimestampedTenantMixin):
    # one per ticket; mirrors the ticket's due timestamps for the breach monitor
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), unique=True)
    policy_config_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("slapolicyconfig.id"), nullable=True)
    priority: Mapped[str] = mapped_column(String(4))
    first_response_due_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    resolution_due_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    paused_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_due_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    first_response_breached_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    resolution_breached_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
