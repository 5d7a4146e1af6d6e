import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, JSON
from app.core.base import Base, TimestampedTenantMixin, UTCDateTime

TICKET_PRIORITIES = ("P1", "P2", "P3", "P4")
TICKET_STATUSES = (
    "NEW", "TRIAGED", "ASSIGNED", "IN_PROGRESS",
    "WAITING_ON_REQUESTER", "WAITING_ON_VENDOR",
    "RESOLVED", "CLOSED", "REOPENED",
)

# ---- Tickets ----

class Ticket(Base, TimestampedTenantMixin):
    subject: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(4), default="P3")  # P1..P4
    status: Mapped[str] = mapped_column(String(32), default="NEW")  # see TICKET_STATUSES

    # Links
    requester_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"))
    assigned_team_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("team.id"), nullable=True, index=True)
    assignee_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("user.id"), nullable=True)
    category_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    # SLA clocks
    first_response_due_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    due_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    first_response_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    sla_paused_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

class TicketMessage(Base, TimestampedTenantMixin):
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), index=True)
    author_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"))
    type: Mapped[str] = mapped_column(String(16), default="PUBLIC")  # PUBLIC | INTERNAL
    body: Mapped[str] = mapped_column(Text)

class TicketEvent(Base, TimestampedTenantMixin):
    # append-only ticket history (transfers, assignments, automation runs, ...)
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), index=True)
    type: Mapped[str] = mapped_column(String(48))
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
