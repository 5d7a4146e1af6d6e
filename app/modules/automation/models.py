import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, Integer, JSON, Index
from app.core.base import Base, TimestampedTenantMixin, TenantRecordMixin, UTCDateTime, utcnow

AUTOMATION_TRIGGERS = ("TICKET_CREATED", "STATUS_CHANGED", "SLA_APPROACHING", "SLA_BREACHED")
SLA_TRIGGERS = frozenset({"SLA_APPROACHING", "SLA_BREACHED"})

# ---- Rules ----

class AutomationRule(Base, TimestampedTenantMixin):
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    trigger: Mapped[str] = mapped_column(String(32), index=True)  # see AUTOMATION_TRIGGERS
    conditions: Mapped[list] = mapped_column(JSON)  # condition nodes, implicit AND at the top level
    actions: Mapped[list] = mapped_column(JSON)     # ordered action nodes
    is_active: Mapped[bool] = mapped_column(default=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)  # lower runs first
    team_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("team.id", ondelete="SET NULL"), nullable=True, index=True)  # None = global
    created_by_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("user.id"))

# ---- Execution history (append-only) ----

class AutomationExecution(Base, TenantRecordMixin):
    __table_args__ = (Index("ix_automationexecution_rule_ticket_trigger", "rule_id", "ticket_id", "trigger"),)

    rule_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("automationrule.id", ondelete="CASCADE"))
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id", ondelete="CASCADE"), index=True)
    trigger: Mapped[str] = mapped_column(String(32))
    success: Mapped[bool] = mapped_column()
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
