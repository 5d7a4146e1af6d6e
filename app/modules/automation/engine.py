import uuid
import logging
from typing import Any
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.modules.automation.actions import ActionExecutor
from app.modules.automation.conditions import TicketContext, evaluate_conditions, is_valid_condition_node
from app.modules.automation.dedupe import ExecutionDeduplicator
from app.modules.automation.errors import ActionError
from app.modules.automation.models import AutomationRule, SLA_TRIGGERS
from app.modules.automation.repository import AutomationRuleRepository, AutomationExecutionRepository
from app.modules.automation.schemas import RunResult, DryRunResult
from app.platform.ports.ticket_store import TicketSnapshot, TicketStorePort, EventLogPort

log = logging.getLogger("automation.engine")

def _in_scope(rule: AutomationRule, ticket: TicketSnapshot) -> bool:
    # team-scoped rules only apply to tickets currently owned by that team
    return rule.team_id is None or rule.team_id == ticket.assigned_team_id

def _usable_conditions(rule: AutomationRule) -> list[Any] | None:
    conditions = rule.conditions
    if not isinstance(conditions, list) or not conditions:
        return None
    if not all(is_valid_condition_node(node) for node in conditions):
        return None
    return conditions

class RuleEngine:
    """Runs the active rules of one trigger against one ticket.

    Rules run one after another in ``(priority, created_at)`` order.  Each rule
    that matches gets its own transaction: its ticket changes, the
    ``AUTOMATION_RULE_EXECUTED`` event and the successful execution record
    commit together or not at all.  A failed rule is recorded in a separate
    session and never stops the rules after it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tickets: TicketStorePort,
        events: EventLogPort,
        executor: ActionExecutor,
        dedupe: ExecutionDeduplicator,
    ):
        self.session_factory = session_factory
        self.tickets = tickets
        self.events = events
        self.executor = executor
        self.dedupe = dedupe

    async def run_for_ticket(self, ticket_id: uuid.UUID, trigger: str) -> RunResult:
        async with self.session_factory() as session:
            ticket = await self.tickets.get_snapshot(session, ticket_id)
            if ticket is None:
                return RunResult(executed=0, errors=["Ticket not found"])
            rules = await AutomationRuleRepository(session).list_active_for_trigger(ticket.org_id, trigger)

        ctx = TicketContext.from_snapshot(ticket)
        executed = 0
        errors: list[str] = []

        for rule in rules:
            if not _in_scope(rule, ticket):
                log.debug("rule=%s ticket=%s skipped: team scope", rule.id, ticket_id)
                continue
            conditions = _usable_conditions(rule)
            if conditions is None:
                log.debug("rule=%s skipped: missing or malformed conditions", rule.id)
                continue
            if not evaluate_conditions(conditions, ctx):
                continue
            actions = rule.actions
            if not isinstance(actions, list) or not actions:
                continue
            if trigger in SLA_TRIGGERS and await self.dedupe.already_executed(rule.id, ticket_id, trigger):
                log.debug("rule=%s ticket=%s skipped: already ran for %s in window", rule.id, ticket_id, trigger)
                continue

            try:
                await self._execute_rule(rule, ticket_id, trigger, actions)
            except Exception as exc:
                msg = str(exc) or exc.__class__.__name__
                log.warning("rule=%s (%s) failed for ticket=%s trigger=%s: %s", rule.id, rule.name, ticket_id, trigger, msg)
                errors.append(f"Rule {rule.name}: {msg}")
                await self._record_failure(rule, ticket_id, trigger, msg)
                continue

            executed += 1
            log.info("rule=%s (%s) executed for ticket=%s trigger=%s", rule.id, rule.name, ticket_id, trigger)

            # later rules see what this one committed
            async with self.session_factory() as session:
                refreshed = await self.tickets.get_snapshot(session, ticket_id)
            if refreshed is None:
                break
            ticket = refreshed
            ctx = TicketContext.from_snapshot(ticket)

        return RunResult(executed=executed, errors=errors)

    async def _execute_rule(self, rule: AutomationRule, ticket_id: uuid.UUID, trigger: str, actions: list[Any]) -> None:
        async with self.session_factory() as tx:
            async with tx.begin():
                # row lock serialises rule transactions for the same ticket
                current = await self.tickets.get_snapshot(tx, ticket_id, for_update=True)
                if current is None:
                    raise ActionError("Ticket not found")
                await self.executor.execute(tx, ticket_id, actions, current, rule.created_by_id)
                await self.events.append(
                    tx, ticket_id, "AUTOMATION_RULE_EXECUTED",
                    {
                        "automation_rule_id": str(rule.id),
                        "automation_rule_name": rule.name,
                        "trigger": trigger,
                        "action_count": len(actions),
                    },
                    rule.created_by_id,
                )
                await AutomationExecutionRepository(tx).record(
                    current.org_id, rule_id=rule.id, ticket_id=ticket_id, trigger=trigger, success=True,
                )

    async def _record_failure(self, rule: AutomationRule, ticket_id: uuid.UUID, trigger: str, error: str) -> None:
        async with self.session_factory() as session:
            await AutomationExecutionRepository(session).record(
                rule.org_id, rule_id=rule.id, ticket_id=ticket_id, trigger=trigger, success=False, error=error,
            )
            await session.commit()

    async def evaluate_rule_for_ticket(self, rule_id: uuid.UUID, ticket_id: uuid.UUID) -> DryRunResult:
        """Preview a rule against a ticket without touching anything."""
        async with self.session_factory() as session:
            rule = await AutomationRuleRepository(session).get(rule_id)
            if rule is None:
                return DryRunResult(matched=False, message="Rule not found")
            ticket = await self.tickets.get_snapshot(session, ticket_id)
            if ticket is None:
                return DryRunResult(matched=False, message="Ticket not found")

        if not _in_scope(rule, ticket):
            return DryRunResult(matched=False, message="Rule is team-scoped and ticket is not (or different team)")
        if not isinstance(rule.conditions, list) or not rule.conditions:
            return DryRunResult(matched=False, message="Rule has no conditions")
        conditions = _usable_conditions(rule)
        if conditions is None or not evaluate_conditions(conditions, TicketContext.from_snapshot(ticket)):
            return DryRunResult(matched=False, message="Conditions did not match")

        actions = rule.actions if isinstance(rule.actions, list) else []
        return DryRunResult(matched=True, actions_that_would_run=actions)
