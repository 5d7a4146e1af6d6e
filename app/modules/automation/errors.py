class AutomationError(Exception):
    """Base class for automation failures."""

class RuleValidationError(AutomationError):
    """Rule definition rejected before it is persisted (bad request)."""

class RuleNotFoundError(AutomationError):
    pass

class RulePermissionError(AutomationError):
    pass

class ActionError(AutomationError):
    """An action could not be applied; aborts every action of the rule."""

class TicketNotFoundError(AutomationError):
    pass
