"""Condition trees: parsing, write-time validation and evaluation against a ticket.

A rule stores its conditions as plain JSON.  Each node is exactly one of

* a leaf   ``{"field": ..., "operator": ..., "value": ...}``
* a group  ``{"and": [node, ...]}``
* a group  ``{"or": [node, ...]}``

The top-level list is an implicit AND.  Evaluation is pure: no I/O and no
side effects.  Anything the evaluator does not understand (unknown operator,
unknown node shape) evaluates to False rather than raising.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from collections.abc import Iterable, Mapping
from typing import Any, Union
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from app.platform.ports.ticket_store import TicketSnapshot

CONDITION_OPERATORS = (
    "contains",
    "equals",
    "notEquals",
    "in",
    "notIn",
    "isEmpty",
    "isNotEmpty",
)

# ---- Context ----

class TicketContext(BaseModel):
    """Flat, read-only view of a ticket that conditions are evaluated against."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    subject: str
    description: str = ""
    priority: str
    status: str
    assigned_team_id: str | None = None
    assignee_id: str | None = None
    category_id: str | None = None
    requester_id: str

    @classmethod
    def from_snapshot(cls, ticket: TicketSnapshot) -> "TicketContext":
        def _id(v: uuid.UUID | None) -> str | None:
            return str(v) if v is not None else None
        return cls(
            id=str(ticket.id),
            subject=ticket.subject,
            description=ticket.description or "",
            priority=ticket.priority,
            status=ticket.status,
            assigned_team_id=_id(ticket.assigned_team_id),
            assignee_id=_id(ticket.assignee_id),
            category_id=_id(ticket.category_id),
            requester_id=str(ticket.requester_id),
        )

    def get(self, field: Any, default: Any = None) -> Any:
        """Look up ``field`` by its snake_case name or its camelCase alias."""
        if not isinstance(field, str):
            return default
        values = self.model_dump()
        if field in values:
            return values[field]
        return self.model_dump(by_alias=True).get(field, default)

CONTEXT_FIELDS = frozenset(TicketContext.model_fields) | frozenset(
    info.alias for info in TicketContext.model_fields.values() if info.alias
)

# ---- Nodes ----

@dataclass(frozen=True)
class ConditionLeaf:
    field: Any
    operator: Any
    value: Any = None

@dataclass(frozen=True)
class AndGroup:
    children: tuple

@dataclass(frozen=True)
class OrGroup:
    children: tuple

@dataclass(frozen=True)
class UnknownNode:
    raw: Any

ConditionNode = Union[ConditionLeaf, AndGroup, OrGroup, UnknownNode]

def parse_condition_node(raw: Any) -> ConditionNode:
    if isinstance(raw, (ConditionLeaf, AndGroup, OrGroup, UnknownNode)):
        return raw
    if not isinstance(raw, Mapping):
        return UnknownNode(raw)
    if isinstance(raw.get("and"), list):
        return AndGroup(tuple(parse_condition_node(c) for c in raw["and"]))
    if isinstance(raw.get("or"), list):
        return OrGroup(tuple(parse_condition_node(c) for c in raw["or"]))
    if "field" in raw and "operator" in raw:
        return ConditionLeaf(raw["field"], raw["operator"], raw.get("value"))
    return UnknownNode(raw)

# ---- Validation ----

def condition_node_error(obj: Any, *, strict: bool = False, path: str = "condition") -> str | None:
    """Return why ``obj`` is not a well-formed condition node, or None if it is.

    Groups must be non-empty and every child is checked recursively; a node may
    not mix group keys with leaf keys, nor ``and`` with ``or``.
    """
    if not isinstance(obj, Mapping):
        return f"{path}: must be an object"
    has_and = obj.get("and") is not None
    has_or = obj.get("or") is not None
    field, operator = obj.get("field"), obj.get("operator")
    has_leaf_keys = "field" in obj or "operator" in obj

    if has_and and has_or:
        return f"{path}: cannot combine 'and' with 'or'"
    if (has_and or has_or) and has_leaf_keys:
        return f"{path}: cannot mix a group with leaf fields"
    if has_and or has_or:
        key = "and" if has_and else "or"
        children = obj[key]
        if not isinstance(children, list) or not children:
            return f"{path}.{key}: must be a non-empty list"
        for i, child in enumerate(children):
            err = condition_node_error(child, strict=strict, path=f"{path}.{key}[{i}]")
            if err:
                return err
        return None
    if isinstance(field, str) and field and isinstance(operator, str) and operator:
        if strict and field not in CONTEXT_FIELDS:
            return f"{path}: unknown field '{field}'"
        if strict and operator not in CONDITION_OPERATORS:
            return f"{path}: unknown operator '{operator}'"
        return None
    return f"{path}: must be a leaf (field + operator) or an and/or group"

def is_valid_condition_node(obj: Any) -> bool:
    return condition_node_error(obj) is None

# ---- Evaluation ----

def normalize_comparable(value: Any) -> str | None:
    """Canonical text form of a scalar, or None when the value is not comparable."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return None

def _strict_equal(a: Any, b: Any) -> bool:
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return False
    if isinstance(a, (int, float, Decimal)) and isinstance(b, (int, float, Decimal)):
        return a == b
    if isinstance(a, (dict, list)) or type(a) is not type(b):
        return False
    return a == b

def _matches_any(raw: Any, text: str, options: Iterable[Any]) -> bool:
    for option in options:
        norm = normalize_comparable(option)
        if (norm is not None and norm.lower() == text) or _strict_equal(raw, option):
            return True
    return False

def evaluate_single(field: Any, operator: Any, value: Any, ctx: Mapping | TicketContext) -> bool:
    raw = ctx.get(field) if isinstance(field, str) else None
    text = (normalize_comparable(raw) or "").lower()
    wanted = (normalize_comparable(value) or "").lower()

    if operator == "contains":
        return wanted in text
    if operator == "equals":
        return text == wanted
    if operator == "notEquals":
        return text != wanted
    if operator == "in":
        if not isinstance(value, (list, tuple)):
            return _strict_equal(raw, value)
        return _matches_any(raw, text, value)
    if operator == "notIn":
        if not isinstance(value, (list, tuple)):
            return not _strict_equal(raw, value)
        return not _matches_any(raw, text, value)
    if operator == "isEmpty":
        return raw is None or (normalize_comparable(raw) or "").strip() == ""
    if operator == "isNotEmpty":
        return raw is not None and (normalize_comparable(raw) or "").strip() != ""
    return False

def evaluate_node(node: Any, ctx: Mapping | TicketContext) -> bool:
    node = parse_condition_node(node)
    if isinstance(node, AndGroup):
        return all(evaluate_node(child, ctx) for child in node.children)
    if isinstance(node, OrGroup):
        return any(evaluate_node(child, ctx) for child in node.children)
    if isinstance(node, ConditionLeaf):
        return evaluate_single(node.field, node.operator, node.value, ctx)
    return False

def evaluate_conditions(nodes: Iterable[Any], ctx: Mapping | TicketContext) -> bool:
    """All top-level nodes must hold."""
    return all(evaluate_node(node, ctx) for node in nodes)
