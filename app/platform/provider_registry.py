from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.core.config import settings
from app.core.db import SessionLocal
from app.platform.ports.automation import AutomationTriggerPort
from app.platform.ports.directory import DirectoryPort
from app.platform.ports.notifications import NotificationPort
from app.platform.ports.status_transitions import StatusTransitionPort
from app.platform.ports.ticket_store import TicketStorePort, EventLogPort
from app.modules.automation.actions import ActionExecutor
from app.modules.automation.dedupe import ExecutionDeduplicator
from app.modules.automation.dispatch import InlineAutomationDispatcher
from app.modules.automation.engine import RuleEngine
from app.modules.identity.repository import DirectoryRepository
from app.modules.notifications.service import NotificationsService
from app.modules.sla.engine import SlaEngine
from app.modules.tickets.repository import TicketStore, TicketEventLog
from app.modules.tickets.transitions import StatusTransitions

class ProviderRegistry:
    _tickets: TicketStorePort | None = None
    _events: EventLogPort | None = None
    _directory: DirectoryPort | None = None
    _sla: SlaEngine | None = None
    _notifications: NotificationPort | None = None

    @classmethod
    def tickets(cls) -> TicketStorePort:
        if cls._tickets is None:
            cls._tickets = TicketStore()
        return cls._tickets

    @classmethod
    def events(cls) -> EventLogPort:
        if cls._events is None:
            cls._events = TicketEventLog()
        return cls._events

    @classmethod
    def directory(cls) -> DirectoryPort:
        if cls._directory is None:
            cls._directory = DirectoryRepository()
        return cls._directory

    @classmethod
    def sla(cls) -> SlaEngine:
        if cls._sla is None:
            cls._sla = SlaEngine()
        return cls._sla

    @classmethod
    def notifications(cls) -> NotificationPort:
        if cls._notifications is None:
            cls._notifications = NotificationsService()
        return cls._notifications

    @classmethod
    def status_transitions(cls) -> StatusTransitionPort:
        return StatusTransitions(cls.tickets(), cls.events(), cls.sla())

    @classmethod
    def action_executor(cls) -> ActionExecutor:
        return ActionExecutor(
            tickets=cls.tickets(),
            directory=cls.directory(),
            sla=cls.sla(),
            statuses=cls.status_transitions(),
            notifications=cls.notifications(),
            events=cls.events(),
        )

    @classmethod
    def rule_engine(cls, session_factory: async_sessionmaker[AsyncSession] | None = None) -> RuleEngine:
        factory = session_factory or SessionLocal
        return RuleEngine(
            factory,
            tickets=cls.tickets(),
            events=cls.events(),
            executor=cls.action_executor(),
            dedupe=ExecutionDeduplicator(factory, timedelta(hours=settings.AUTOMATION_SLA_DEDUPE_HOURS)),
        )

    @classmethod
    def automation_trigger(cls, session_factory: async_sessionmaker[AsyncSession] | None = None) -> AutomationTriggerPort:
        return InlineAutomationDispatcher(cls.rule_engine(session_factory))

registry = ProviderRegistry()
