import uuid
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.sla.engine import add_hours
from app.platform.ports.sla import SlaEnginePort
from app.platform.ports.status_transitions import StatusTransitionPort
from app.platform.ports.ticket_store import TicketSnapshot, TicketStorePort, EventLogPort

STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "NEW": ("TRIAGED", "ASSIGNED", "IN_PROGRESS", "WAITING_ON_REQUESTER", "WAITING_ON_VENDOR", "RESOLVED", "CLOSED"),
    "TRIAGED": ("ASSIGNED", "IN_PROGRESS", "WAITING_ON_REQUESTER", "WAITING_ON_VENDOR", "RESOLVED", "CLOSED"),
    "ASSIGNED": ("IN_PROGRESS", "WAITING_ON_REQUESTER", "WAITING_ON_VENDOR", "RESOLVED", "CLOSED"),
    "IN_PROGRESS": ("WAITING_ON_REQUESTER", "WAITING_ON_VENDOR", "RESOLVED", "CLOSED"),
    "WAITING_ON_REQUESTER": ("IN_PROGRESS", "RESOLVED", "CLOSED"),
    "WAITING_ON_VENDOR": ("IN_PROGRESS", "RESOLVED", "CLOSED"),
    "RESOLVED": ("REOPENED", "CLOSED"),
    "CLOSED": ("REOPENED",),
    "REOPENED": ("TRIAGED", "ASSIGNED", "IN_PROGRESS", "WAITING_ON_REQUESTER", "WAITING_ON_VENDOR", "RESOLVED", "CLOSED"),
}

# SLA clock is paused while waiting on someone else
PAUSE_STATUSES = frozenset({"WAITING_ON_REQUESTER", "WAITING_ON_VENDOR"})

def _now() -> datetime:
    return datetime.now(timezone.utc)

class InvalidStatusTransition(ValueError):
    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Invalid status transition {from_status} -> {to_status}")
        self.from_status = from_status
        self.to_status = to_status

def is_valid_transition(from_status: str, to_status: str) -> bool:
    if from_status == to_status:
        return True
    return to_status in STATUS_TRANSITIONS.get(from_status, ())

class StatusTransitions(StatusTransitionPort):
    """Applies a status change with the same side effects as a manual change by an agent."""

    def __init__(self, tickets: TicketStorePort, events: EventLogPort, sla: SlaEnginePort):
        self.tickets = tickets
        self.events = events
        self.sla = sla

    async def apply(self, tx: AsyncSession, ticket: TicketSnapshot, new_status: str, actor_id: uuid.UUID | None) -> None:
        if not is_valid_transition(ticket.status, new_status):
            raise InvalidStatusTransition(ticket.status, new_status)

        now = _now()
        entering_pause = new_status in PAUSE_STATUSES and ticket.status not in PAUSE_STATUSES
        leaving_pause = ticket.status in PAUSE_STATUSES and new_status not in PAUSE_STATUSES
        reopened = new_status == "REOPENED"

        data: dict = {"status": new_status}
        if new_status == "RESOLVED":
            data["resolved_at"] = now
        if new_status == "CLOSED":
            data["closed_at"] = now
        if new_status in ("RESOLVED", "CLOSED"):
            data["completed_at"] = now
        if reopened:
            data.update(resolved_at=None, closed_at=None, completed_at=None)

        if entering_pause:
            data["sla_paused_at"] = now
        if leaving_pause:
            # push the resolution clock out by however long we were paused
            if ticket.sla_paused_at and ticket.due_at:
                data["due_at"] = ticket.due_at + (now - ticket.sla_paused_at)
            data["sla_paused_at"] = None

        if reopened:
            targets = await self.sla.policy_config_for(tx, ticket.priority, ticket.assigned_team_id)
            data["due_at"] = add_hours(now, targets.resolution_hours)

        await self.tickets.update_fields(tx, ticket.id, **data)
        await self.events.append(
            tx, ticket.id, "TICKET_STATUS_CHANGED",
            {"from": ticket.status, "to": new_status},
            actor_id,
        )
        await self.sla.resync(tx, ticket.id, {"reset_resolution": reopened})
