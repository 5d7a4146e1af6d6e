import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON
from app.core.base import Base, TimestampedTenantMixin, UTCDateTime, utcnow

class AdminAuditEvent(Base, TimestampedTenantMixin):
    # who / tenant
    actor_user_id: Mapped[uuid.UUID] = mapped_column()
    team_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    # What happened
    type: Mapped[str] = mapped_column(String(48))  # AUTOMATION_RULE_CREATED | AUTOMATION_RULE_UPDATED | ...
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
