import math
import uuid
import logging
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.security import Principal
from app.modules.audit.service import AuditService
from app.modules.automation.engine import RuleEngine
from app.modules.automation.errors import RuleNotFoundError, RulePermissionError, TicketNotFoundError
from app.modules.automation.models import AutomationRule
from app.modules.automation.repository import AutomationRuleRepository, AutomationExecutionRepository
from app.modules.automation.schemas import (
    AutomationRuleCreate, AutomationRuleUpdate,
    AutomationExecutionOut, AutomationExecutionPage, PageMeta, DryRunResult,
)
from app.modules.automation.validation import validate_rule_definition
from app.modules.tickets.repository import TicketRepository

log = logging.getLogger("automation.service")

# fields that may be cleared with an explicit null on update
_NULLABLE_FIELDS = ("description", "team_id")

def _summary(rule: AutomationRule) -> dict:
    return {
        "rule_id": str(rule.id),
        "name": rule.name,
        "trigger": rule.trigger,
        "team_id": str(rule.team_id) if rule.team_id else None,
        "is_active": rule.is_active,
        "priority": rule.priority,
    }

def ensure_can_manage(principal: Principal, team_id: uuid.UUID | None) -> None:
    """Global rules are owner-only; a team admin manages the rules of their primary team."""
    if principal.role == "OWNER":
        return
    if principal.role == "TEAM_ADMIN" and team_id is not None and principal.primary_team_id == team_id:
        return
    if team_id is None:
        raise RulePermissionError("Only owners can create or manage global (unscoped) automation rules")
    raise RulePermissionError("Only owners and team admins (for their team) can manage automation rules")

class AutomationService:
    def __init__(self, session: AsyncSession, engine: RuleEngine | None = None):
        self.session = session
        self.engine = engine
        self.rules = AutomationRuleRepository(session)
        self.executions = AutomationExecutionRepository(session)
        self.audit = AuditService(session)

    async def _load(self, principal: Principal, rule_id: uuid.UUID) -> AutomationRule:
        rule = await self.rules.get(rule_id, principal.org_id)
        if rule is None:
            raise RuleNotFoundError("Automation rule not found")
        ensure_can_manage(principal, rule.team_id)
        return rule

    async def list_rules(self, principal: Principal) -> Sequence[AutomationRule]:
        if principal.role == "TEAM_ADMIN":
            if principal.primary_team_id is None:
                raise RulePermissionError("Team administrator must have a primary team set")
            return await self.rules.list_for_scope(principal.org_id, principal.primary_team_id)
        if principal.role != "OWNER":
            raise RulePermissionError("Only owners and team admins can view automation rules")
        return await self.rules.list_for_scope(principal.org_id)

    async def get_rule(self, principal: Principal, rule_id: uuid.UUID) -> AutomationRule:
        return await self._load(principal, rule_id)

    async def get_executions(self, principal: Principal, rule_id: uuid.UUID, page: int = 1, page_size: int = 20) -> AutomationExecutionPage:
        await self._load(principal, rule_id)
        rows, total = await self.executions.page_for_rule(rule_id, page=page, page_size=page_size)
        return AutomationExecutionPage(
            data=[AutomationExecutionOut.model_validate(r) for r in rows],
            meta=PageMeta(page=page, page_size=page_size, total=total, total_pages=math.ceil(total / page_size)),
        )

    async def create_rule(self, principal: Principal, payload: AutomationRuleCreate) -> AutomationRule:
        ensure_can_manage(principal, payload.team_id)
        validate_rule_definition(payload.trigger, payload.conditions, payload.actions)
        rule = await self.rules.create(principal.org_id, created_by_id=principal.user_id, **payload.model_dump())
        await self.audit.log(principal.org_id, principal.user_id, "AUTOMATION_RULE_CREATED", _summary(rule), team_id=rule.team_id)
        await self.session.commit()
        log.info("automation rule created id=%s trigger=%s team=%s", rule.id, rule.trigger, rule.team_id)
        return rule

    async def update_rule(self, principal: Principal, rule_id: uuid.UUID, payload: AutomationRuleUpdate) -> AutomationRule:
        rule = await self._load(principal, rule_id)
        data = {
            k: v for k, v in payload.model_dump(exclude_unset=True).items()
            if v is not None or k in _NULLABLE_FIELDS
        }
        if "team_id" in data:
            ensure_can_manage(principal, data["team_id"])
        validate_rule_definition(**{k: data[k] for k in ("trigger", "conditions", "actions") if k in data})

        rule = await self.rules.update_fields(rule, **data)
        await self.audit.log(principal.org_id, principal.user_id, "AUTOMATION_RULE_UPDATED", _summary(rule), team_id=rule.team_id)
        await self.session.commit()
        log.info("automation rule updated id=%s fields=%s", rule.id, sorted(data))
        return rule

    async def delete_rule(self, principal: Principal, rule_id: uuid.UUID) -> uuid.UUID:
        rule = await self._load(principal, rule_id)
        summary, team_id = _summary(rule), rule.team_id
        await self.rules.delete(rule)
        await self.audit.log(principal.org_id, principal.user_id, "AUTOMATION_RULE_DELETED", summary, team_id=team_id)
        await self.session.commit()
        log.info("automation rule deleted id=%s", rule_id)
        return rule_id

    async def evaluate_rule_for_ticket(self, principal: Principal, rule_id: uuid.UUID, ticket_id: uuid.UUID) -> DryRunResult:
        """Dry-run after the caller is known to manage the rule and see the ticket."""
        await self._load(principal, rule_id)
        if await TicketRepository(self.session).get(principal.org_id, ticket_id) is None:
            raise TicketNotFoundError("Ticket not found")
        if self.engine is None:
            raise RuntimeError("AutomationService was built without a rule engine")
        return await self.engine.evaluate_rule_for_ticket(rule_id, ticket_id)
