import uuid
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field

# ---- Rules ----

class AutomationRuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    trigger: str
    conditions: list[Any]
    actions: list[Any]
    is_active: bool = True
    priority: int = 0
    team_id: uuid.UUID | None = None

class AutomationRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    trigger: str | None = None
    conditions: list[Any] | None = None
    actions: list[Any] | None = None
    is_active: bool | None = None
    priority: int | None = None
    team_id: uuid.UUID | None = None

class AutomationRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    org_id: uuid.UUID
    name: str
    description: str | None
    trigger: str
    conditions: list[Any]
    actions: list[Any]
    is_active: bool
    priority: int
    team_id: uuid.UUID | None
    created_by_id: uuid.UUID
    created_at: datetime
    updated_at: datetime | None

class AutomationRuleList(BaseModel):
    data: list[AutomationRuleOut]

# ---- Executions ----

class AutomationExecutionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rule_id: uuid.UUID
    ticket_id: uuid.UUID
    trigger: str
    success: bool
    error: str | None
    executed_at: datetime

class PageMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int

class AutomationExecutionPage(BaseModel):
    data: list[AutomationExecutionOut]
    meta: PageMeta

# ---- Engine results ----

class RunResult(BaseModel):
    executed: int = 0
    errors: list[str] = []

class DryRunResult(BaseModel):
    matched: bool
    actions_that_would_run: list[Any] = []
    message: str | None = None

class RuleTestRequest(BaseModel):
    ticket_id: uuid.UUID | None = None
