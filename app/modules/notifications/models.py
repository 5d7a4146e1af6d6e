import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey
from app.core.base import Base, TimestampedTenantMixin, UTCDateTime

class Notification(Base, TimestampedTenantMixin):
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"), index=True)
    ticket_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("ticket.id"), nullable=True)
    type: Mapped[str] = mapped_column(String(32))  # SLA_AT_RISK | TICKET_ASSIGNED | ...
    title: Mapped[str] = mapped_column(String(240))
    body: Mapped[str] = mapped_column(Text)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
