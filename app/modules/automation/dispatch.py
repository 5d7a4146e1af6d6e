import uuid
import logging
from app.modules.automation.engine import RuleEngine
from app.platform.ports.automation import AutomationTriggerPort

log = logging.getLogger("automation.dispatch")

class InlineAutomationDispatcher(AutomationTriggerPort):
    """Runs the rule engine right after a ticket write has committed.

    Automation must never fail the ticket write that triggered it, so
    orchestration errors are logged here and not re-raised.
    """

    def __init__(self, engine: RuleEngine):
        self.engine = engine

    async def fire(self, ticket_id: uuid.UUID, trigger: str) -> None:
        try:
            result = await self.engine.run_for_ticket(ticket_id, trigger)
        except Exception:
            log.exception("automation run failed ticket=%s trigger=%s", ticket_id, trigger)
            return
        if result.errors:
            log.warning("automation ticket=%s trigger=%s executed=%d errors=%s", ticket_id, trigger, result.executed, result.errors)
        else:
            log.info("automation ticket=%s trigger=%s executed=%d", ticket_id, trigger, result.executed)
