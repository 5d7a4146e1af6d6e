import uuid
import logging
from datetime import datetime, timedelta
from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.modules.automation.errors import ActionError
from app.platform.ports.directory import DirectoryPort
from app.platform.ports.notifications import NotificationPort
from app.platform.ports.sla import SlaEnginePort
from app.platform.ports.status_transitions import StatusTransitionPort
from app.platform.ports.ticket_store import TicketSnapshot, TicketStorePort, EventLogPort

log = logging.getLogger("automation.actions")

ACTION_TYPES = (
    "assign_team",
    "assign_user",
    "set_priority",
    "set_status",
    "notify_team_lead",
    "add_internal_note",
)

Priority = Literal["P1", "P2", "P3", "P4"]
Status = Literal[
    "NEW", "TRIAGED", "ASSIGNED", "IN_PROGRESS", "WAITING_ON_REQUESTER",
    "WAITING_ON_VENDOR", "RESOLVED", "CLOSED", "REOPENED",
]

# ---- Action nodes ----

class AssignTeamAction(BaseModel):
    type: Literal["assign_team"]
    team_id: uuid.UUID

class AssignUserAction(BaseModel):
    type: Literal["assign_user"]
    user_id: uuid.UUID

class SetPriorityAction(BaseModel):
    type: Literal["set_priority"]
    priority: Priority

class SetStatusAction(BaseModel):
    type: Literal["set_status"]
    status: Status

class NotifyTeamLeadAction(BaseModel):
    type: Literal["notify_team_lead"]
    body: str | None = None

class AddInternalNoteAction(BaseModel):
    type: Literal["add_internal_note"]
    body: str = Field(min_length=1)

ActionNode = Annotated[
    Union[
        AssignTeamAction,
        AssignUserAction,
        SetPriorityAction,
        SetStatusAction,
        NotifyTeamLeadAction,
        AddInternalNoteAction,
    ],
    Field(discriminator="type"),
]

_action_adapter = TypeAdapter(ActionNode)

def parse_action(raw: Any) -> ActionNode | None:
    """Typed action for a stored JSON action, or None when it cannot run (unknown type, missing parameter)."""
    try:
        return _action_adapter.validate_python(raw)
    except ValidationError:
        return None

def _add_hours(base: datetime, hours: float) -> datetime:
    return base + timedelta(hours=hours)

# ---- Executor ----

class ActionExecutor:
    """Applies a rule's actions, in order, inside the caller's transaction.

    After every action that changes assignment, priority or status the ticket
    is re-read from ``tx`` so that later actions see the effect of earlier ones.
    Any exception aborts the remaining actions; the caller rolls back.
    """

    def __init__(
        self,
        tickets: TicketStorePort,
        directory: DirectoryPort,
        sla: SlaEnginePort,
        statuses: StatusTransitionPort,
        notifications: NotificationPort,
        events: EventLogPort,
    ):
        self.tickets = tickets
        self.directory = directory
        self.sla = sla
        self.statuses = statuses
        self.notifications = notifications
        self.events = events

    async def execute(
        self,
        tx: AsyncSession,
        ticket_id: uuid.UUID,
        actions: list[Any],
        ticket: TicketSnapshot,
        acting_user_id: uuid.UUID,
    ) -> None:
        current = ticket
        for raw in actions:
            action = parse_action(raw)
            if action is None:
                log.debug("ticket=%s skipping unrunnable action %r", ticket_id, raw)
                continue
            if isinstance(action, AssignTeamAction):
                current = await self._assign_team(tx, ticket_id, action, current, acting_user_id)
            elif isinstance(action, AssignUserAction):
                current = await self._assign_user(tx, ticket_id, action, current, acting_user_id)
            elif isinstance(action, SetPriorityAction):
                current = await self._set_priority(tx, ticket_id, action, current, acting_user_id)
            elif isinstance(action, SetStatusAction):
                current = await self._set_status(tx, ticket_id, action, current, acting_user_id)
            elif isinstance(action, NotifyTeamLeadAction):
                await self._notify_team_lead(tx, ticket_id, action, current)
            elif isinstance(action, AddInternalNoteAction):
                await self._add_internal_note(tx, ticket_id, action, current, acting_user_id)

    async def _refresh(self, tx: AsyncSession, ticket_id: uuid.UUID) -> TicketSnapshot:
        snap = await self.tickets.get_snapshot(tx, ticket_id)
        if snap is None:
            raise ActionError("Ticket not found")
        return snap

    async def _assign_team(self, tx, ticket_id, action: AssignTeamAction, current: TicketSnapshot, actor) -> TicketSnapshot:
        prior_team_id = current.assigned_team_id
        await self.tickets.update_fields(tx, ticket_id, assigned_team_id=action.team_id, assignee_id=None)
        await self.events.append(
            tx, ticket_id, "TICKET_TRANSFERRED",
            {
                "from_team_id": str(prior_team_id) if prior_team_id else None,
                "to_team_id": str(action.team_id),
            },
            actor,
        )
        await self.sla.resync(tx, ticket_id)
        return await self._refresh(tx, ticket_id)

    async def _assign_user(self, tx, ticket_id, action: AssignUserAction, current: TicketSnapshot, actor) -> TicketSnapshot:
        team_id = current.assigned_team_id
        if not team_id:
            raise ActionError("assign_user requires the ticket to be assigned to a team first")
        if not await self.directory.is_team_member(tx, team_id, action.user_id):
            raise ActionError(f"User {action.user_id} is not a member of team {team_id}")
        await self.tickets.update_fields(tx, ticket_id, assignee_id=action.user_id)
        await self.events.append(tx, ticket_id, "TICKET_ASSIGNED", {"assignee_id": str(action.user_id)}, actor)
        await self.sla.resync(tx, ticket_id)
        return await self._refresh(tx, ticket_id)

    async def _set_priority(self, tx, ticket_id, action: SetPriorityAction, current: TicketSnapshot, actor) -> TicketSnapshot:
        old = await self.sla.policy_config_for(tx, current.priority, current.assigned_team_id)
        new = await self.sla.policy_config_for(tx, action.priority, current.assigned_team_id)

        # Recover when each clock started under the old targets, then re-apply the new
        # targets from that same start so elapsed SLA time carries over.
        if current.first_response_due_at:
            first_start = _add_hours(current.first_response_due_at, -old.first_response_hours)
        else:
            first_start = current.created_at
        if current.due_at:
            resolution_start = _add_hours(current.due_at, -old.resolution_hours)
        else:
            resolution_start = current.created_at

        await self.tickets.update_fields(
            tx, ticket_id,
            priority=action.priority,
            first_response_due_at=_add_hours(first_start, new.first_response_hours),
            due_at=_add_hours(resolution_start, new.resolution_hours),
        )
        await self.events.append(
            tx, ticket_id, "TICKET_PRIORITY_CHANGED",
            {"from": current.priority, "to": action.priority},
            actor,
        )
        await self.sla.resync(tx, ticket_id, {"policy_config_id": new.policy_config_id})
        return await self._refresh(tx, ticket_id)

    async def _set_status(self, tx, ticket_id, action: SetStatusAction, current: TicketSnapshot, actor) -> TicketSnapshot:
        if action.status == current.status:
            return current
        await self.statuses.apply(tx, current, action.status, actor)
        return await self._refresh(tx, ticket_id)

    async def _notify_team_lead(self, tx, ticket_id, action: NotifyTeamLeadAction, current: TicketSnapshot) -> None:
        if not current.assigned_team_id:
            return
        for user_id in await self.directory.team_lead_ids(tx, current.assigned_team_id):
            await self.notifications.create(
                tx,
                user_id=user_id,
                type="SLA_AT_RISK",
                title=f"Automation: {current.subject}",
                body=action.body or settings.AUTOMATION_DEFAULT_NOTIFY_BODY,
                ticket_id=ticket_id,
            )

    async def _add_internal_note(self, tx, ticket_id, action: AddInternalNoteAction, current: TicketSnapshot, actor) -> None:
        author_id = actor
        if author_id is None or not await self.directory.user_exists(tx, author_id):
            author_id = await self.directory.find_owner_id(tx, current.org_id)
            if author_id is None:
                raise ActionError("Unable to add automation internal note: no valid author account")
        await self.tickets.add_message(
            tx, ticket_id,
            author_id=author_id,
            body=f"{settings.AUTOMATION_NOTE_PREFIX}{action.body}",
            type="INTERNAL",
        )
