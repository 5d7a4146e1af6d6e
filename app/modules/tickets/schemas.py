import uuid
from datetime import datetime
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field

Priority = Literal["P1", "P2", "P3", "P4"]

# ---- Tickets ----

class TicketCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    priority: Priority = "P3"
    requester_id: uuid.UUID | None = None  # defaults to the caller
    assigned_team_id: uuid.UUID | None = None
    assignee_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None

class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    org_id: uuid.UUID
    subject: str
    description: str | None
    priority: str
    status: str
    requester_id: uuid.UUID
    assigned_team_id: uuid.UUID | None
    assignee_id: uuid.UUID | None
    category_id: uuid.UUID | None
    first_response_due_at: datetime | None
    due_at: datetime | None
    sla_paused_at: datetime | None
    resolved_at: datetime | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime | None

class TicketMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    author_id: uuid.UUID
    type: str
    body: str
    created_at: datetime

class TicketEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    payload: dict[str, Any]
    created_by_id: uuid.UUID | None
    created_at: datetime

class TicketDetail(TicketOut):
    messages: list[TicketMessageOut] = []
    events: list[TicketEventOut] = []

# ---- Commands ----

class StatusChange(BaseModel):
    status: Literal[
        "NEW", "TRIAGED", "ASSIGNED", "IN_PROGRESS", "WAITING_ON_REQUESTER",
        "WAITING_ON_VENDOR", "RESOLVED", "CLOSED", "REOPENED",
    ]

class SlaEventIn(BaseModel):
    trigger: Literal["SLA_APPROACHING", "SLA_BREACHED"]
