"""
Unit tests for write-time rule validation.
"""
import uuid

import pytest

from app.modules.automation.errors import RuleValidationError
from app.modules.automation.validation import validate_rule_definition

GOOD_CONDITIONS = [{"field": "priority", "operator": "equals", "value": "P1"}]
GOOD_ACTIONS = [{"type": "notify_team_lead"}]


def check(**kwargs):
    kwargs.setdefault("trigger", "TICKET_CREATED")
    kwargs.setdefault("conditions", GOOD_CONDITIONS)
    kwargs.setdefault("actions", GOOD_ACTIONS)
    validate_rule_definition(**kwargs)


class TestRuleDefinition:

    def test_valid_rule(self):
        check(actions=[
            {"type": "assign_team", "team_id": str(uuid.uuid4())},
            {"type": "assign_user", "user_id": str(uuid.uuid4())},
            {"type": "set_priority", "priority": "P2"},
            {"type": "set_status", "status": "IN_PROGRESS"},
            {"type": "notify_team_lead", "body": "Heads up"},
            {"type": "add_internal_note", "body": "Escalated"},
        ])

    def test_unknown_trigger(self):
        with pytest.raises(RuleValidationError, match="Invalid trigger: TICKET_DELETED"):
            check(trigger="TICKET_DELETED")

    @pytest.mark.parametrize("conditions", [[], None, "priority=P1", [{"and": []}]])
    def test_bad_conditions(self, conditions):
        with pytest.raises(RuleValidationError):
            check(conditions=conditions)

    def test_unknown_operator_rejected_at_write_time(self):
        with pytest.raises(RuleValidationError, match="unknown operator 'matches'"):
            check(conditions=[{"or": [{"field": "subject", "operator": "matches", "value": "x"}]}])

    def test_unknown_field_rejected_at_write_time(self):
        with pytest.raises(RuleValidationError, match="unknown field 'team'"):
            check(conditions=[{"field": "team", "operator": "isEmpty"}])

    def test_camel_case_fields_accepted(self):
        check(conditions=[{"field": "assignedTeamId", "operator": "isEmpty"}])

    @pytest.mark.parametrize("actions", [[], None, {"type": "notify_team_lead"}])
    def test_actions_must_be_non_empty_list(self, actions):
        with pytest.raises(RuleValidationError, match="actions must be a non-empty list"):
            check(actions=actions)

    @pytest.mark.parametrize("action, message", [
        ({"type": "assign_team"}, "Action 2 (assign_team): team_id is required."),
        ({"type": "assign_team", "team_id": "support"}, "Action 2 (assign_team): team_id must be a valid id."),
        ({"type": "assign_user", "user_id": "  "}, "Action 2 (assign_user): user_id is required."),
        ({"type": "set_priority", "priority": "P5"}, "Action 2 (set_priority): priority must be P1, P2, P3, or P4."),
        ({"type": "set_status"}, "Action 2 (set_status): status is required."),
        ({"type": "set_status", "status": "DONE"}, "Action 2 (set_status): unknown status 'DONE'."),
        ({"type": "add_internal_note", "body": ""}, "Action 2 (add_internal_note): body is required."),
        ({"type": "escalate"}, "Action 2: unknown type 'escalate'."),
        ({"team_id": "x"}, "Action 2: unknown type ''."),
    ])
    def test_action_parameters(self, action, message):
        with pytest.raises(RuleValidationError) as exc:
            check(actions=[{"type": "notify_team_lead"}, action])
        assert str(exc.value) == message

    def test_partial_update_only_checks_supplied_parts(self):
        validate_rule_definition(actions=GOOD_ACTIONS)
        validate_rule_definition()
        with pytest.raises(RuleValidationError):
            validate_rule_definition(conditions=[])
