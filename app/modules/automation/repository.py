import uuid
from datetime import datetime
from typing import Sequence
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.automation.models import AutomationRule, AutomationExecution

class AutomationRuleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, org_id: uuid.UUID, **data) -> AutomationRule:
        obj = AutomationRule(org_id=org_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, rule_id: uuid.UUID, org_id: uuid.UUID | None = None) -> AutomationRule | None:
        conditions = [AutomationRule.id == rule_id, AutomationRule.deleted_at.is_(None)]
        if org_id is not None:
            conditions.append(AutomationRule.org_id == org_id)
        res = await self.session.execute(select(AutomationRule).where(*conditions))
        return res.scalar_one_or_none()

    async def list_for_scope(self, org_id: uuid.UUID, team_id: uuid.UUID | None = None) -> Sequence[AutomationRule]:
        conditions = [AutomationRule.org_id == org_id, AutomationRule.deleted_at.is_(None)]
        if team_id is not None:
            conditions.append(AutomationRule.team_id == team_id)
        q = select(AutomationRule).where(*conditions).order_by(AutomationRule.priority.asc(), AutomationRule.name.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def list_active_for_trigger(self, org_id: uuid.UUID, trigger: str) -> Sequence[AutomationRule]:
        q = select(AutomationRule).where(
            AutomationRule.org_id == org_id,
            AutomationRule.trigger == trigger,
            AutomationRule.is_active.is_(True),
            AutomationRule.deleted_at.is_(None),
        ).order_by(AutomationRule.priority.asc(), AutomationRule.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def update_fields(self, rule: AutomationRule, **data) -> AutomationRule:
        for k, v in data.items():
            setattr(rule, k, v)
        await self.session.flush()
        return rule

    async def delete(self, rule: AutomationRule) -> None:
        # execution history goes with the rule
        await self.session.execute(delete(AutomationExecution).where(AutomationExecution.rule_id == rule.id))
        await self.session.delete(rule)
        await self.session.flush()

class AutomationExecutionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, org_id: uuid.UUID, *, rule_id: uuid.UUID, ticket_id: uuid.UUID, trigger: str, success: bool, error: str | None = None) -> AutomationExecution:
        obj = AutomationExecution(org_id=org_id, rule_id=rule_id, ticket_id=ticket_id, trigger=trigger, success=success, error=error)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def count_successful_since(self, rule_id: uuid.UUID, ticket_id: uuid.UUID, trigger: str, since: datetime) -> int:
        q = select(func.count(AutomationExecution.id)).where(
            AutomationExecution.rule_id == rule_id,
            AutomationExecution.ticket_id == ticket_id,
            AutomationExecution.trigger == trigger,
            AutomationExecution.success.is_(True),
            AutomationExecution.executed_at >= since,
        )
        res = await self.session.execute(q)
        return res.scalar_one()

    async def page_for_rule(self, rule_id: uuid.UUID, *, page: int = 1, page_size: int = 20) -> tuple[Sequence[AutomationExecution], int]:
        q = (
            select(AutomationExecution)
            .where(AutomationExecution.rule_id == rule_id)
            .order_by(AutomationExecution.executed_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        rows = (await self.session.execute(q)).scalars().all()
        total = (await self.session.execute(
            select(func.count(AutomationExecution.id)).where(AutomationExecution.rule_id == rule_id)
        )).scalar_one()
        return rows, total
