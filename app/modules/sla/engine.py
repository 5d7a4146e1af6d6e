import uuid
import logging
from datetime import datetime, timedelta
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.sla.models import SlaPolicyConfig, SlaPolicyConfigTarget, SlaPolicyAssignment, SlaInstance
from app.modules.tickets.models import Ticket
from app.platform.ports.sla import SlaEnginePort, SlaTargets

log = logging.getLogger("sla.engine")

# (first response hours, resolution hours) when no policy config applies
DEFAULT_TARGETS: dict[str, tuple[int, int]] = {
    "P1": (1, 4),
    "P2": (4, 24),
    "P3": (8, 72),
    "P4": (24, 168),
}

def add_hours(base: datetime, hours: float) -> datetime:
    return base + timedelta(hours=hours)

def _target_columns():
    return (
        SlaPolicyConfig.id,
        SlaPolicyConfigTarget.first_response_hours,
        SlaPolicyConfigTarget.resolution_hours,
    )

def _target_join(priority: str):
    return and_(
        SlaPolicyConfigTarget.policy_config_id == SlaPolicyConfig.id,
        SlaPolicyConfigTarget.priority == priority,
        SlaPolicyConfigTarget.deleted_at.is_(None),
    )

class SlaEngine(SlaEnginePort):
    """Resolves SLA targets and keeps each ticket's SlaInstance in step with its due timestamps."""

    async def policy_config_for(self, tx: AsyncSession, priority: str, team_id: uuid.UUID | None) -> SlaTargets:
        # team-specific assignment wins, then the enabled platform default, then hard-coded targets
        if team_id:
            q = (
                select(*_target_columns())
                .select_from(SlaPolicyAssignment)
                .join(SlaPolicyConfig, SlaPolicyConfig.id == SlaPolicyAssignment.policy_config_id)
                .join(SlaPolicyConfigTarget, _target_join(priority))
                .where(
                    SlaPolicyAssignment.team_id == team_id,
                    SlaPolicyAssignment.deleted_at.is_(None),
                    SlaPolicyConfig.enabled.is_(True),
                    SlaPolicyConfig.deleted_at.is_(None),
                )
                .order_by(SlaPolicyAssignment.updated_at.desc())
                .limit(1)
            )
            row = (await tx.execute(q)).first()
            if row:
                return SlaTargets(policy_config_id=row[0], first_response_hours=row[1], resolution_hours=row[2])

        q = (
            select(*_target_columns())
            .select_from(SlaPolicyConfig)
            .join(SlaPolicyConfigTarget, _target_join(priority))
            .where(
                SlaPolicyConfig.is_default.is_(True),
                SlaPolicyConfig.enabled.is_(True),
                SlaPolicyConfig.deleted_at.is_(None),
            )
            .order_by(SlaPolicyConfig.updated_at.desc())
            .limit(1)
        )
        row = (await tx.execute(q)).first()
        if row:
            return SlaTargets(policy_config_id=row[0], first_response_hours=row[1], resolution_hours=row[2])

        first_response, resolution = DEFAULT_TARGETS[priority]
        return SlaTargets(first_response_hours=first_response, resolution_hours=resolution)

    async def initial_due_dates(self, tx: AsyncSession, priority: str, team_id: uuid.UUID | None, start: datetime) -> tuple[datetime, datetime]:
        targets = await self.policy_config_for(tx, priority, team_id)
        return add_hours(start, targets.first_response_hours), add_hours(start, targets.resolution_hours)

    async def resync(self, tx: AsyncSession, ticket_id: uuid.UUID, overrides: dict | None = None) -> None:
        """Upsert the ticket's SlaInstance from its current priority, team and due timestamps.

        Recognised overrides: ``policy_config_id`` (may be None to detach),
        ``reset_resolution`` and ``reset_first_response``.
        """
        overrides = overrides or {}
        res = await tx.execute(
            select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
        )
        ticket = res.scalar_one_or_none()
        if ticket is None:
            return

        res = await tx.execute(select(SlaInstance).where(SlaInstance.ticket_id == ticket_id))
        inst = res.scalar_one_or_none()

        if "policy_config_id" in overrides:
            policy_config_id = overrides["policy_config_id"]
        elif inst is None or inst.policy_config_id is None:
            policy_config_id = (await self.policy_config_for(tx, ticket.priority, ticket.assigned_team_id)).policy_config_id
        else:
            policy_config_id = inst.policy_config_id

        if inst is None:
            inst = SlaInstance(org_id=ticket.org_id, ticket_id=ticket_id, priority=ticket.priority)
            tx.add(inst)

        if overrides.get("reset_resolution"):
            inst.resolution_breached_at = None
        if overrides.get("reset_first_response"):
            inst.first_response_breached_at = None

        inst.policy_config_id = policy_config_id
        inst.priority = ticket.priority
        inst.first_response_due_at = ticket.first_response_due_at
        inst.resolution_due_at = ticket.due_at
        inst.paused_at = ticket.sla_paused_at
        inst.next_due_at = self._next_due_at(ticket, inst)
        await tx.flush()
        log.debug("SLA instance synced ticket=%s policy_config=%s next_due=%s", ticket_id, policy_config_id, inst.next_due_at)

    @staticmethod
    def _next_due_at(ticket: Ticket, inst: SlaInstance) -> datetime | None:
        if ticket.sla_paused_at:
            return None
        if not ticket.first_response_at and not inst.first_response_breached_at and ticket.first_response_due_at:
            return ticket.first_response_due_at
        if not ticket.completed_at and not inst.resolution_breached_at and ticket.due_at:
            return ticket.due_at
        return None
