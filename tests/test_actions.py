"""
Tests for ActionExecutor against a real (sqlite) database.
"""
import uuid
from datetime import timedelta

import pytest

from app.modules.automation.errors import ActionError
from app.modules.automation.actions import parse_action, SetPriorityAction
from app.modules.tickets.transitions import InvalidStatusTransition
from app.platform.provider_registry import registry


async def run_actions(session_factory, executor, ticket, actions, actor):
    async with session_factory() as tx:
        async with tx.begin():
            snap = await registry.tickets().get_snapshot(tx, ticket.id, for_update=True)
            await executor.execute(tx, ticket.id, actions, snap, actor)


class TestParseAction:
    def test_known_and_unknown(self):
        assert isinstance(parse_action({"type": "set_priority", "priority": "P2"}), SetPriorityAction)
        assert parse_action({"type": "set_priority"}) is None
        assert parse_action({"type": "explode"}) is None
        assert parse_action("assign_team") is None


class TestSetPriority:

    async def test_due_dates_keep_their_anchor(self, seed, people, session_factory, executor):
        """P3 -> P1 re-applies the P1 targets from the start of each clock."""
        ticket = await seed.ticket(people["requester"], priority="P3")
        assert ticket.due_at == ticket.created_at + timedelta(hours=72)

        await run_actions(session_factory, executor, ticket, [{"type": "set_priority", "priority": "P1"}], people["owner"].id)

        after = await seed.get_ticket(ticket.id)
        assert after.priority == "P1"
        assert after.first_response_due_at == ticket.created_at + timedelta(hours=1)
        assert after.due_at == ticket.created_at + timedelta(hours=4)

        events = await seed.events(ticket.id, "TICKET_PRIORITY_CHANGED")
        assert [e.payload for e in events] == [{"from": "P3", "to": "P1"}]

        inst = await seed.sla_instance(ticket.id)
        assert inst.priority == "P1"
        assert inst.resolution_due_at == after.due_at


class TestAssignment:

    async def test_assign_team_clears_assignee(self, seed, people, session_factory, executor):
        other = await seed.team("Network")
        ticket = await seed.ticket(
            people["requester"], assigned_team_id=people["team"].id, assignee_id=people["agent"].id,
        )
        await run_actions(session_factory, executor, ticket, [{"type": "assign_team", "team_id": str(other.id)}], people["owner"].id)

        after = await seed.get_ticket(ticket.id)
        assert after.assigned_team_id == other.id
        assert after.assignee_id is None
        [event] = await seed.events(ticket.id, "TICKET_TRANSFERRED")
        assert event.payload == {"from_team_id": str(people["team"].id), "to_team_id": str(other.id)}

    async def test_assign_user_sees_team_set_earlier_in_the_same_rule(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        actions = [
            {"type": "assign_team", "team_id": str(people["team"].id)},
            {"type": "assign_user", "user_id": str(people["agent"].id)},
        ]
        await run_actions(session_factory, executor, ticket, actions, people["owner"].id)

        after = await seed.get_ticket(ticket.id)
        assert after.assigned_team_id == people["team"].id
        assert after.assignee_id == people["agent"].id

    async def test_assign_user_outside_team_fails_and_rolls_back(self, seed, people, session_factory, executor):
        outsider = await seed.user(email="outsider@example.com")
        ticket = await seed.ticket(people["requester"], assigned_team_id=people["team"].id, assignee_id=people["agent"].id)
        actions = [
            {"type": "set_priority", "priority": "P1"},
            {"type": "assign_user", "user_id": str(outsider.id)},
        ]
        with pytest.raises(ActionError, match="not a member"):
            await run_actions(session_factory, executor, ticket, actions, people["owner"].id)

        after = await seed.get_ticket(ticket.id)
        assert after.assignee_id == people["agent"].id
        assert after.priority == "P3"

    async def test_assign_user_without_team_fails(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        with pytest.raises(ActionError):
            await run_actions(session_factory, executor, ticket, [{"type": "assign_user", "user_id": str(people["agent"].id)}], people["owner"].id)


class TestSetStatus:

    async def test_transition_writes_event(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        await run_actions(session_factory, executor, ticket, [{"type": "set_status", "status": "IN_PROGRESS"}], people["owner"].id)

        after = await seed.get_ticket(ticket.id)
        assert after.status == "IN_PROGRESS"
        [event] = await seed.events(ticket.id, "TICKET_STATUS_CHANGED")
        assert event.payload == {"from": "NEW", "to": "IN_PROGRESS"}

    async def test_same_status_is_a_no_op(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        await run_actions(session_factory, executor, ticket, [{"type": "set_status", "status": "NEW"}], people["owner"].id)
        assert await seed.events(ticket.id, "TICKET_STATUS_CHANGED") == []

    async def test_pause_status_records_pause(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        await run_actions(session_factory, executor, ticket, [{"type": "set_status", "status": "WAITING_ON_VENDOR"}], people["owner"].id)

        after = await seed.get_ticket(ticket.id)
        assert after.sla_paused_at is not None
        inst = await seed.sla_instance(ticket.id)
        assert inst.paused_at == after.sla_paused_at
        assert inst.next_due_at is None

    async def test_invalid_transition_raises(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        with pytest.raises(InvalidStatusTransition):
            await run_actions(session_factory, executor, ticket, [{"type": "set_status", "status": "REOPENED"}], people["owner"].id)
        assert (await seed.get_ticket(ticket.id)).status == "NEW"


class TestNotifyTeamLead:

    async def test_notifies_each_lead(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"], subject="Disk full", assigned_team_id=people["team"].id)
        await run_actions(session_factory, executor, ticket, [{"type": "notify_team_lead"}], people["owner"].id)

        [note] = await seed.notifications(ticket.id)
        assert note.user_id == people["lead"].id
        assert note.type == "SLA_AT_RISK"
        assert note.title == "Automation: Disk full"
        assert note.body == "Rule triggered for this ticket."

    async def test_without_team_does_nothing(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        await run_actions(session_factory, executor, ticket, [{"type": "notify_team_lead", "body": "x"}], people["owner"].id)
        assert await seed.notifications(ticket.id) == []


class TestAddInternalNote:

    async def test_authored_by_rule_creator(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        await run_actions(session_factory, executor, ticket, [{"type": "add_internal_note", "body": "Looked at it"}], people["agent"].id)

        [msg] = await seed.messages(ticket.id)
        assert msg.type == "INTERNAL"
        assert msg.author_id == people["agent"].id
        assert msg.body == "[Automation] Looked at it"

    async def test_falls_back_to_an_owner(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        await run_actions(session_factory, executor, ticket, [{"type": "add_internal_note", "body": "hi"}], uuid.uuid4())

        [msg] = await seed.messages(ticket.id)
        assert msg.author_id == people["owner"].id

    async def test_fails_without_any_author(self, seed, session_factory, executor):
        requester = await seed.user(role="REQUESTER")
        ticket = await seed.ticket(requester)
        with pytest.raises(ActionError, match="no valid author"):
            await run_actions(session_factory, executor, ticket, [{"type": "add_internal_note", "body": "hi"}], uuid.uuid4())
        assert await seed.messages(ticket.id) == []


class TestUnrunnableActions:

    async def test_are_skipped(self, seed, people, session_factory, executor):
        ticket = await seed.ticket(people["requester"])
        actions = [{"type": "teleport"}, {"type": "set_priority"}, {"type": "set_priority", "priority": "P2"}]
        await run_actions(session_factory, executor, ticket, actions, people["owner"].id)
        assert (await seed.get_ticket(ticket.id)).priority == "P2"
