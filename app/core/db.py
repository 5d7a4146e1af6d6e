from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from .config import settings
from .base import Base

engine = create_async_engine(settings.DATABASE_DSN, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)

def import_models():
    # Register every mapped class on Base.metadata before create_all.
    import app.modules.identity.models  # noqa: F401
    import app.modules.tickets.models  # noqa: F401
    import app.modules.sla.models  # noqa: F401
    import app.modules.notifications.models  # noqa: F401
    import app.modules.audit.models  # noqa: F401
    import app.modules.automation.models  # noqa: F401

async def create_all(bind: AsyncEngine):
    import_models()
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def init_models():
    ## In dev-only "create_all" mode, keep old behavior; otherwise, migrations own the schema.
    if settings.DB_MANAGE == "create_all":
        await create_all(engine)

async def get_session():
    async with SessionLocal() as session:
        yield session

def get_session_factory() -> async_sessionmaker[AsyncSession]:
    # rule runs open their own sessions, one per rule transaction
    return SessionLocal
