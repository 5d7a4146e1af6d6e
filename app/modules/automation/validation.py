import uuid
from collections.abc import Mapping
from typing import Any, get_args
from app.modules.automation.actions import Priority, Status
from app.modules.automation.conditions import condition_node_error
from app.modules.automation.errors import RuleValidationError
from app.modules.automation.models import AUTOMATION_TRIGGERS

PRIORITIES = get_args(Priority)
STATUSES = get_args(Status)

def _blank(v: Any) -> bool:
    return not isinstance(v, str) or not v.strip()

def _is_uuid(v: Any) -> bool:
    try:
        uuid.UUID(str(v))
    except ValueError:
        return False
    return True

def validate_trigger(trigger: Any) -> None:
    if trigger not in AUTOMATION_TRIGGERS:
        raise RuleValidationError(f"Invalid trigger: {trigger}")

def validate_conditions(conditions: Any) -> None:
    if not isinstance(conditions, list) or not conditions:
        raise RuleValidationError("conditions must be a non-empty list")
    for i, node in enumerate(conditions):
        err = condition_node_error(node, strict=True, path=f"conditions[{i}]")
        if err:
            raise RuleValidationError(f"Invalid condition tree: {err}")

def validate_actions(actions: Any) -> None:
    """Every action needs the parameters its type acts on, so that no stored rule is a silent no-op."""
    if not isinstance(actions, list) or not actions:
        raise RuleValidationError("actions must be a non-empty list")
    for n, action in enumerate(actions, start=1):
        if not isinstance(action, Mapping):
            raise RuleValidationError(f"Action {n}: must be an object.")
        kind = action.get("type")
        prefix = f"Action {n} ({kind})"
        if kind == "assign_team":
            if _blank(action.get("team_id")):
                raise RuleValidationError(f"{prefix}: team_id is required.")
            if not _is_uuid(action["team_id"]):
                raise RuleValidationError(f"{prefix}: team_id must be a valid id.")
        elif kind == "assign_user":
            if _blank(action.get("user_id")):
                raise RuleValidationError(f"{prefix}: user_id is required.")
            if not _is_uuid(action["user_id"]):
                raise RuleValidationError(f"{prefix}: user_id must be a valid id.")
        elif kind == "set_priority":
            if action.get("priority") not in PRIORITIES:
                raise RuleValidationError(f"{prefix}: priority must be P1, P2, P3, or P4.")
        elif kind == "set_status":
            if _blank(action.get("status")):
                raise RuleValidationError(f"{prefix}: status is required.")
            if action["status"] not in STATUSES:
                raise RuleValidationError(f"{prefix}: unknown status '{action['status']}'.")
        elif kind == "add_internal_note":
            if _blank(action.get("body")):
                raise RuleValidationError(f"{prefix}: body is required.")
        elif kind == "notify_team_lead":
            body = action.get("body")
            if body is not None and not isinstance(body, str):
                raise RuleValidationError(f"{prefix}: body must be text.")
        else:
            raise RuleValidationError(f"Action {n}: unknown type '{kind if kind is not None else ''}'.")

_UNSET: Any = object()

def validate_rule_definition(trigger: Any = _UNSET, conditions: Any = _UNSET, actions: Any = _UNSET) -> None:
    """Check whichever parts of a rule are supplied; updates pass only what changes."""
    if trigger is not _UNSET:
        validate_trigger(trigger)
    if conditions is not _UNSET:
        validate_conditions(conditions)
    if actions is not _UNSET:
        validate_actions(actions)
