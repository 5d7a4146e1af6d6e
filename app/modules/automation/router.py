import uuid
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.core.db import get_session, get_session_factory
from app.core.security import Principal, require_roles
from app.modules.automation.errors import (
    AutomationError, RuleValidationError, RuleNotFoundError, RulePermissionError, TicketNotFoundError,
)
from app.modules.automation.schemas import (
    AutomationRuleCreate, AutomationRuleUpdate, AutomationRuleOut, AutomationRuleList,
    AutomationExecutionPage, DryRunResult, RuleTestRequest,
)
from app.modules.automation.service import AutomationService
from app.platform.provider_registry import registry

router = APIRouter()

manager = require_roles("OWNER", "TEAM_ADMIN")

def svc(
    session: AsyncSession = Depends(get_session),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AutomationService:
    return AutomationService(session, registry.rule_engine(factory))

def _http_error(e: AutomationError) -> HTTPException:
    if isinstance(e, RuleValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, RulePermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, (RuleNotFoundError, TicketNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.get("", response_model=AutomationRuleList)
async def list_rules(principal: Principal = Depends(manager), service: AutomationService = Depends(svc)):
    try:
        rules = await service.list_rules(principal)
    except AutomationError as e:
        raise _http_error(e)
    return {"data": rules}

@router.post("", response_model=AutomationRuleOut, status_code=201)
async def create_rule(
    payload: AutomationRuleCreate,
    principal: Principal = Depends(manager),
    service: AutomationService = Depends(svc),
):
    try:
        return await service.create_rule(principal, payload)
    except AutomationError as e:
        raise _http_error(e)

@router.get("/{rule_id}", response_model=AutomationRuleOut)
async def get_rule(rule_id: uuid.UUID, principal: Principal = Depends(manager), service: AutomationService = Depends(svc)):
    try:
        return await service.get_rule(principal, rule_id)
    except AutomationError as e:
        raise _http_error(e)

@router.get("/{rule_id}/executions", response_model=AutomationExecutionPage)
async def list_executions(
    rule_id: uuid.UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(manager),
    service: AutomationService = Depends(svc),
):
    try:
        return await service.get_executions(principal, rule_id, page, page_size)
    except AutomationError as e:
        raise _http_error(e)

@router.patch("/{rule_id}", response_model=AutomationRuleOut)
async def update_rule(
    rule_id: uuid.UUID,
    payload: AutomationRuleUpdate,
    principal: Principal = Depends(manager),
    service: AutomationService = Depends(svc),
):
    try:
        return await service.update_rule(principal, rule_id, payload)
    except AutomationError as e:
        raise _http_error(e)

@router.delete("/{rule_id}")
async def delete_rule(rule_id: uuid.UUID, principal: Principal = Depends(manager), service: AutomationService = Depends(svc)):
    try:
        deleted = await service.delete_rule(principal, rule_id)
    except AutomationError as e:
        raise _http_error(e)
    return {"id": deleted}

@router.post("/{rule_id}/test", response_model=DryRunResult)
async def test_rule(
    rule_id: uuid.UUID,
    payload: RuleTestRequest,
    principal: Principal = Depends(manager),
    service: AutomationService = Depends(svc),
):
    """Dry-run a rule against a ticket. Nothing is written."""
    if payload.ticket_id is None:
        return DryRunResult(matched=False, message="Provide ticket_id to test against a ticket.")
    try:
        result = await service.evaluate_rule_for_ticket(principal, rule_id, payload.ticket_id)
    except AutomationError as e:
        raise _http_error(e)
    if result.message is None:
        result = result.model_copy(update={"message": "Rule would run." if result.matched else "Rule did not match."})
    return result
